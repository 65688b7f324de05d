"""行パターンによるソース情報のヒューリスティック抽出。

これは構文解析器ではない。正規表現で宣言の「形」を行単位に照合し、
精度と引き換えに速度とパーサー非依存性を得ている。既知の誤検出・検出漏れ:

- 複数行にまたがるクラスヘッダ (``class Foo(\\n    Base,\\n):``) では基底クラスを取りこぼす。
- 複数行の文字列リテラルは三重引用符の出現回数で追跡するため、
  1行に引用符が偶数回現れる特殊な書き方では文字列内の ``class``/``def`` を拾うことがある。
- 基底クラスは先頭をsuperclass、残りをinterfacesとみなす (ABC・Protocol・Mixinの区別はしない)。
- ``if``/``try`` ブロック内で条件付き定義されたクラスや、``type()`` による動的生成は検出しない。
- 非推奨マーカーは ``deprecat`` / ``will be removed`` を含む行を全て拾うため、
  コメントや警告フィルタ設定の行も対象になる。

意味的な精度が必要になった場合は、:class:`SourceExtractor` を実装した
構文解析ベースの抽出器に差し替える。呼び出し側の契約は変わらない。
"""

import re
import sys
from dataclasses import dataclass, field
from typing import Protocol

from plumb.models.context import ClassInfo, DeprecatedUsage

_DOCSTRING_QUOTES = ('"""', "'''")

_IMPORT_RE = re.compile(r"^(?:import\s+[\w.]+|from\s+\.*[\w.]*\s+import\b)")
_CLASS_RE = re.compile(
    r"^(?P<indent>[ \t]*)class\s+(?P<name>[A-Za-z_]\w*)\s*(?P<params>\[[^\]]*\])?\s*(?:\((?P<bases>[^)]*)\)?)?\s*:?"
)
_DEF_RE = re.compile(r"^(?P<indent>[ \t]*)(?:async\s+)?def\s+(?P<name>[A-Za-z_]\w*)\s*[\[(]")
_DECORATOR_RE = re.compile(r"^(?P<indent>[ \t]*)@(?P<name>[\w.]+)")
_SELF_ATTR_RE = re.compile(r"\bself\.(?P<name>[A-Za-z_]\w*)\s*(?::[^=]+)?=(?!=)")
_CLASS_ATTR_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<name>[A-Za-z_]\w*)\s*:\s*[^=\s]")
_CLASS_ASSIGN_RE = re.compile(r"^[ \t]*(?P<name>[A-Za-z_]\w*)\s*=(?!=)")
_TYPEVAR_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*=\s*(?:typing\.)?TypeVar\(")
_TYPE_STMT_RE = re.compile(r"^type\s+(?P<name>[A-Za-z_]\w*)(?:\[[^\]]*\])?\s*=\s*(?P<target>.+)$")
_TYPE_ALIAS_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*:\s*(?:typing\.)?TypeAlias\s*=\s*(?P<target>.+)$")
_DEPRECATED_RE = re.compile(r"deprecat|will be removed", re.IGNORECASE)
_DEPRECATED_DECORATOR_RE = re.compile(r"^\s*@(?:[\w.]+\.)?deprecated\b")
_DEPRECATED_NAME_RE = re.compile(
    r"`?(?P<api>[A-Za-z_][\w.]*)(?:\(\))?`?\s+(?:is|are|has been)\s+deprecated",
    re.IGNORECASE,
)
_REPLACEMENT_RE = re.compile(r"use\s+`?(?P<replacement>[A-Za-z_][\w.]*(?:\(\))?)`?\s+instead", re.IGNORECASE)

_CONSTRUCTOR_NAMES = frozenset({"__init__", "__new__"})
_LOCAL_MODULE_ROOTS = ("src",)


@dataclass
class TypeDeclarations:
    """1ファイルから抽出した型宣言。"""

    generics: list[str] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)


class SourceExtractor(Protocol):
    """ソースファイル1件から構造情報を取り出す抽出器のインターフェース。"""

    def extract_imports(self, lines: list[str]) -> list[str]: ...

    def extract_classes(self, file_path: str, lines: list[str]) -> list[ClassInfo]: ...

    def extract_deprecations(self, file_path: str, lines: list[str]) -> list[DeprecatedUsage]: ...

    def extract_type_declarations(self, lines: list[str]) -> TypeDeclarations: ...


def _code_lines(lines: list[str]) -> list[tuple[int, str]]:
    """三重引用符で囲まれた文字列の内側を除いた (行番号, 行) の一覧を返す。"""
    result: list[tuple[int, str]] = []
    in_string = False
    for number, line in enumerate(lines, start=1):
        quotes = sum(line.count(q) for q in _DOCSTRING_QUOTES)
        if not in_string:
            result.append((number, line))
        if quotes % 2 == 1:
            in_string = not in_string
    return result


def _indent_width(indent: str) -> int:
    return len(indent.expandtabs(4))


def split_bases(bases: str) -> list[str]:
    """クラスヘッダの基底クラス部分を、角括弧内のカンマを無視して分割する。"""
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in bases:
        if ch in "[(":
            depth += 1
        elif ch in "])":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += ch
    parts.append(current.strip())
    # metaclass= などのキーワード引数は基底クラスではない
    return [p for p in parts if p and "=" not in p]


def import_roots(statement: str) -> list[str]:
    """import文から参照しているトップレベルモジュール名を返す。相対importは空リスト。"""
    if statement.startswith("from "):
        module = statement[len("from ") :].split(" import", 1)[0].strip()
        if not module or module.startswith("."):
            return []
        return [module.split(".")[0]]
    names = statement[len("import ") :].split("#", 1)[0]
    roots: list[str] = []
    for part in names.split(","):
        module = part.strip().split(" as ")[0].strip()
        if module:
            roots.append(module.split(".")[0])
    return roots


def is_stdlib_module(name: str) -> bool:
    return name in sys.stdlib_module_names


def local_module_roots(file_paths: list[str]) -> set[str]:
    """プロジェクト内で定義されているトップレベルのモジュール・パッケージ名を返す。"""
    roots: set[str] = set()
    for rel in file_paths:
        parts = rel.split("/")
        if parts[0] in _LOCAL_MODULE_ROOTS and len(parts) > 1:
            parts = parts[1:]
        head = parts[0]
        roots.add(head[: -len(".py")] if head.endswith(".py") else head)
    return roots


class LinePatternExtractor:
    """正規表現の行照合による :class:`SourceExtractor` 実装。"""

    def extract_imports(self, lines: list[str]) -> list[str]:
        """import文を行順に返す。"""
        statements: list[str] = []
        for _, line in _code_lines(lines):
            stripped = line.strip()
            if _IMPORT_RE.match(stripped):
                statements.append(stripped)
        return statements

    def extract_classes(self, file_path: str, lines: list[str]) -> list[ClassInfo]:
        """クラス宣言とメンバーを抽出する。

        クラス本体はインデントで追跡する。メンバーとして扱うのは
        クラス直下のインデントにある ``def``・クラス属性アノテーションと、
        本体内のどこかにある ``self.x = ...`` 代入。
        """
        classes: list[ClassInfo] = []
        # (クラスのインデント幅, メンバーのインデント幅 or None, ClassInfo)
        open_classes: list[tuple[int, int | None, ClassInfo]] = []
        decorators: list[str] = []

        for number, line in _code_lines(lines):
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            width = _indent_width(line[: len(line) - len(line.lstrip())])

            # インデントが戻ったクラスを閉じる
            while open_classes and width <= open_classes[-1][0]:
                open_classes.pop()

            if open_classes and open_classes[-1][1] is None:
                class_indent, _, info = open_classes[-1]
                open_classes[-1] = (class_indent, width, info)

            decorator = _DECORATOR_RE.match(line)
            if decorator:
                decorators.append(decorator.group("name"))
                continue

            class_match = _CLASS_RE.match(line)
            if class_match:
                bases = split_bases(class_match.group("bases") or "")
                info = ClassInfo(
                    name=class_match.group("name"),
                    file_path=file_path,
                    line=number,
                    superclass=bases[0] if bases else None,
                    interfaces=bases[1:],
                )
                classes.append(info)
                open_classes.append((width, None, info))
                decorators = []
                continue

            if open_classes:
                _, member_indent, current = open_classes[-1]
                def_match = _DEF_RE.match(line)
                if def_match and width == member_indent:
                    self._add_member(current, def_match.group("name"), decorators)
                elif width == member_indent:
                    attr = _CLASS_ATTR_RE.match(line) or _CLASS_ASSIGN_RE.match(line)
                    if attr and attr.group("name") not in ("return", "else", "try", "finally", "lambda"):
                        _append_unique(current.properties, attr.group("name"))
                for self_attr in _SELF_ATTR_RE.finditer(line):
                    _append_unique(current.properties, self_attr.group("name"))
            decorators = []

        return classes

    @staticmethod
    def _add_member(info: ClassInfo, name: str, decorators: list[str]) -> None:
        short = {d.rsplit(".", 1)[-1] for d in decorators}
        if name in _CONSTRUCTOR_NAMES:
            _append_unique(info.constructors, name)
        elif "classmethod" in short and name.startswith(("from_", "create")):
            # 代替コンストラクタ
            _append_unique(info.constructors, name)
        elif "property" in short or "cached_property" in short:
            _append_unique(info.properties, name)
        elif "setter" in short or "deleter" in short:
            return
        else:
            _append_unique(info.methods, name)

    def extract_deprecations(self, file_path: str, lines: list[str]) -> list[DeprecatedUsage]:
        """非推奨マーカーを含む行を抽出する。"""
        usages: list[DeprecatedUsage] = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not _DEPRECATED_RE.search(stripped) or _IMPORT_RE.match(stripped):
                continue
            replacement = _REPLACEMENT_RE.search(stripped)
            usages.append(
                DeprecatedUsage(
                    file_path=file_path,
                    line=index + 1,
                    api=self._deprecated_api_name(lines, index),
                    replacement=replacement.group("replacement") if replacement else None,
                    message=stripped[:200],
                )
            )
        return usages

    @staticmethod
    def _deprecated_api_name(lines: list[str], index: int) -> str:
        line = lines[index]
        if _DEPRECATED_DECORATOR_RE.match(line):
            # デコレータの対象は直後の def / class
            for following in lines[index + 1 : index + 4]:
                target = _DEF_RE.match(following) or _CLASS_RE.match(following)
                if target:
                    return target.group("name")
        named = _DEPRECATED_NAME_RE.search(line)
        if named:
            return named.group("api")
        # 直前の def / class の中にあれば、その名前を対象とみなす
        for previous in reversed(lines[max(0, index - 3) : index]):
            target = _DEF_RE.match(previous) or _CLASS_RE.match(previous)
            if target:
                return target.group("name")
        return "unknown"

    def extract_type_declarations(self, lines: list[str]) -> TypeDeclarations:
        """ジェネリクスと型エイリアスの宣言を抽出する。"""
        declarations = TypeDeclarations()
        for _, line in _code_lines(lines):
            typevar = _TYPEVAR_RE.match(line)
            if typevar:
                _append_unique(declarations.generics, typevar.group("name"))
                continue
            class_match = _CLASS_RE.match(line)
            if class_match and (class_match.group("params") or "Generic[" in (class_match.group("bases") or "")):
                _append_unique(declarations.generics, class_match.group("name"))
                continue
            alias = _TYPE_STMT_RE.match(line) or _TYPE_ALIAS_RE.match(line)
            if alias:
                declarations.aliases[alias.group("name")] = alias.group("target").strip()
        return declarations


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)
