"""プロジェクト構造モデルの構築を行うサービス。"""

import asyncio
import logging
import re
from collections import Counter
from pathlib import Path

from plumb.config import ServerConfig
from plumb.heuristics.manifest import scrape_manifest
from plumb.heuristics.patterns import (
    LinePatternExtractor,
    SourceExtractor,
    import_roots,
    is_stdlib_module,
    local_module_roots,
)
from plumb.models.context import ClassInfo, CodeStyleProfile, DeprecatedUsage, ProjectContext, TypeInventory
from plumb.storage.source_tree import SourceTree

logger = logging.getLogger(__name__)

# requirements.txtは設定上のマニフェストでなくても依存の抽出元として読む
_EXTRA_DEPENDENCY_FILES = ("requirements.txt",)

_OPTIONAL_RE = re.compile(r"\bOptional\[|\|\s*None\b|\bNone\s*\|")
_DATACLASS_RE = re.compile(r"^\s*@(?:dataclasses\.)?dataclass\b")
_ASYNC_PATTERNS: dict[str, re.Pattern[str]] = {
    "async def": re.compile(r"^\s*async\s+def\b"),
    "await": re.compile(r"\bawait\b"),
    "async for": re.compile(r"\basync\s+for\b"),
    "async with": re.compile(r"\basync\s+with\b"),
    "asyncio.gather": re.compile(r"\basyncio\.gather\("),
    "asyncio.create_task": re.compile(r"\bcreate_task\("),
    "TaskGroup": re.compile(r"\bTaskGroup\("),
}
_NAMING_PATTERNS: dict[str, re.Pattern[str]] = {
    "snake_case_functions": re.compile(r"^\s*(?:async\s+)?def\s+_*[a-z][a-z0-9_]*\s*\("),
    "camelCase_functions": re.compile(r"^\s*(?:async\s+)?def\s+_*[a-z]+[A-Z]\w*\s*\("),
    "PascalCase_classes": re.compile(r"^\s*class\s+_*[A-Z][A-Za-z0-9]*\b"),
    "UPPER_CASE_constants": re.compile(r"^_*[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+\s*(?::[^=]+)?="),
    "private_members": re.compile(r"^\s+(?:(?:async\s+)?def\s+)?_[a-z]\w*\s*[(:=]"),
}


class ProjectContextBuilder:
    """ソースツリーを静的に走査してProjectContextを構築する。

    構築はリクエスト毎に一から行い、結果はキャッシュしない。
    """

    def __init__(self, config: ServerConfig, extractor: SourceExtractor | None = None) -> None:
        self._config = config
        self._extractor: SourceExtractor = extractor or LinePatternExtractor()

    def open_tree(self, project_path: str | None = None, exclude_paths: list[str] | None = None) -> SourceTree:
        """除外ルールを適用したソースツリーを開く。"""
        root = Path(project_path) if project_path else self._config.default_project_path
        return SourceTree(
            root,
            [*self._config.default_excludes, *(exclude_paths or [])],
            self._config.source_suffixes,
        )

    async def build(self, project_path: str | None = None, exclude_paths: list[str] | None = None) -> ProjectContext:
        """プロジェクトコンテキストを構築する。

        ソースツリーを一度だけ読み込んだスナップショットに対して各パスを並行に実行し、
        最後に結果をまとめる。同じツリーからは常に同じ結果を返す。

        Args:
            project_path: プロジェクトのルートディレクトリ。
            exclude_paths: 走査対象から外すパスのフラグメント。

        Raises:
            ConfigurationError: プロジェクトパスが存在しない場合。
        """
        tree = self.open_tree(project_path, exclude_paths)
        snapshot = await asyncio.to_thread(tree.snapshot)
        manifests = await asyncio.to_thread(self._read_manifests, tree)
        logger.debug("Building context for %s (%d files)", tree.root, len(snapshot))

        dependencies, imports, (classes, collisions), deprecations, style, types = await asyncio.gather(
            asyncio.to_thread(self.scan_dependencies, manifests),
            asyncio.to_thread(self.scan_imports, snapshot),
            asyncio.to_thread(self.scan_classes, snapshot),
            asyncio.to_thread(self.scan_deprecations, snapshot),
            asyncio.to_thread(self.scan_code_style, snapshot),
            asyncio.to_thread(self.scan_types, snapshot),
        )
        stdlib_modules, external_packages = self.classify_imports(imports, list(snapshot))

        return ProjectContext(
            project_path=str(tree.root),
            dependencies=sorted(dependencies),
            dependency_constraints=dict(sorted(dependencies.items())),
            imports=imports,
            stdlib_modules=stdlib_modules,
            external_packages=external_packages,
            classes=classes,
            class_collisions=collisions,
            deprecated_usages=deprecations,
            code_style=style,
            type_inventory=types,
            files_scanned=len(snapshot),
        )

    def _read_manifests(self, tree: SourceTree) -> dict[str, list[str]]:
        manifests: dict[str, list[str]] = {}
        for name in [*self._config.manifest_names, *_EXTRA_DEPENDENCY_FILES]:
            if name not in manifests and (tree.root / name).is_file():
                manifests[name] = tree.read_lines(name)
        return manifests

    def scan_dependencies(self, manifests: dict[str, list[str]]) -> dict[str, str]:
        """マニフェストから依存パッケージ名と制約を抽出する。"""
        dependencies: dict[str, str] = {}
        for name, lines in manifests.items():
            for package, constraint in scrape_manifest(name, lines).items():
                # 複数マニフェストで宣言されている場合は制約のある方を残す
                if constraint or package not in dependencies:
                    dependencies[package] = constraint
        return dependencies

    def scan_imports(self, snapshot: dict[str, list[str]]) -> dict[str, list[str]]:
        """ファイル毎のimport文を行順で抽出する。importのないファイルは含めない。"""
        imports: dict[str, list[str]] = {}
        for rel in sorted(snapshot):
            statements = self._extractor.extract_imports(snapshot[rel])
            if statements:
                imports[rel] = statements
        return imports

    def scan_classes(self, snapshot: dict[str, list[str]]) -> tuple[dict[str, ClassInfo], dict[str, list[str]]]:
        """クラス一覧を抽出する。

        クラスは単純名で索引する。同名のクラスが複数ファイルにある場合は
        ソート順で最後のファイルの定義を採用し、全定義元を衝突一覧に記録する。
        """
        classes: dict[str, ClassInfo] = {}
        origins: dict[str, list[str]] = {}
        for rel in sorted(snapshot):
            for info in self._extractor.extract_classes(rel, snapshot[rel]):
                classes[info.name] = info
                origins.setdefault(info.name, []).append(f"{rel}:{info.line}")

        collisions = {name: locations for name, locations in sorted(origins.items()) if len(locations) > 1}
        for name, locations in collisions.items():
            logger.debug("Class name %s defined in %d places: %s", name, len(locations), ", ".join(locations))
        return dict(sorted(classes.items())), collisions

    def scan_deprecations(self, snapshot: dict[str, list[str]]) -> list[DeprecatedUsage]:
        """非推奨マーカーを (ファイル, 行) 順で抽出する。"""
        usages: list[DeprecatedUsage] = []
        for rel in sorted(snapshot):
            usages.extend(self._extractor.extract_deprecations(rel, snapshot[rel]))
        return sorted(usages, key=lambda u: (u.file_path, u.line))

    def scan_code_style(self, snapshot: dict[str, list[str]]) -> CodeStyleProfile:
        """プロジェクト全体のスタイル傾向を集計する。"""
        naming: Counter[str] = Counter()
        async_found: set[str] = set()
        uses_optional = False
        uses_dataclasses = False
        uses_mixins = False

        for rel in sorted(snapshot):
            for line in snapshot[rel]:
                if not uses_optional and _OPTIONAL_RE.search(line):
                    uses_optional = True
                if not uses_dataclasses and _DATACLASS_RE.match(line):
                    uses_dataclasses = True
                if not uses_mixins and "Mixin" in line and line.lstrip().startswith("class "):
                    uses_mixins = True
                for pattern_name, pattern in _ASYNC_PATTERNS.items():
                    if pattern.search(line):
                        async_found.add(pattern_name)
                for pattern_name, pattern in _NAMING_PATTERNS.items():
                    if pattern.search(line):
                        naming[pattern_name] += 1

        return CodeStyleProfile(
            uses_optional_types=uses_optional,
            uses_mixins=uses_mixins,
            uses_dataclasses=uses_dataclasses,
            uses_async=bool(async_found),
            async_patterns=sorted(async_found),
            naming_conventions=dict(sorted(naming.items())),
        )

    def scan_types(self, snapshot: dict[str, list[str]]) -> TypeInventory:
        """型定義の一覧を抽出する。クラス宣言は全てカスタム型として数える。"""
        custom: set[str] = set()
        generics: set[str] = set()
        aliases: dict[str, str] = {}
        for rel in sorted(snapshot):
            lines = snapshot[rel]
            custom.update(info.name for info in self._extractor.extract_classes(rel, lines))
            declarations = self._extractor.extract_type_declarations(lines)
            generics.update(declarations.generics)
            aliases.update(declarations.aliases)
        return TypeInventory(
            custom_types=sorted(custom),
            generic_types=sorted(generics),
            type_aliases=dict(sorted(aliases.items())),
        )

    def classify_imports(self, imports: dict[str, list[str]], file_paths: list[str]) -> tuple[list[str], list[str]]:
        """import先を標準ライブラリと外部パッケージに分類する。プロジェクト内モジュールはどちらにも含めない。"""
        local = local_module_roots(file_paths)
        stdlib: set[str] = set()
        external: set[str] = set()
        for statements in imports.values():
            for statement in statements:
                for root in import_roots(statement):
                    if root in local:
                        continue
                    if is_stdlib_module(root):
                        stdlib.add(root)
                    else:
                        external.add(root)
        return sorted(stdlib), sorted(external)
