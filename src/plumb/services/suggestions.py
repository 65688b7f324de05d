"""エラー種別・コード断片・エラーメッセージからコード提案を生成するサービス。"""

import logging
import re

from plumb.config import ServerConfig
from plumb.models.context import CodeSuggestion, ProjectContext
from plumb.services.context import ProjectContextBuilder
from plumb.services.knowledge import KnowledgeBase

logger = logging.getLogger(__name__)

_CONFIDENCE_ORDER = {"high": 0, "medium": 1, "low": 2}
_UNRESOLVED_MARKERS = ("undefined", "not defined", "unresolved")
_TOKEN_SPLIT_RE = re.compile(r"[^\w]+")
_MIN_TOKEN_LENGTH = 3


def levenshtein_distance(a: str, b: str) -> int:
    """2つの文字列の編集距離 (挿入・削除・置換を各1とする) を返す。"""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """編集距離に基づく類似度を0.0〜1.0で返す。

    同一文字列は1.0、片方が空なら0.0。それ以外は
    (長い方の長さ - 編集距離) / 長い方の長さ。
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer = max(len(a), len(b))
    return (longer - levenshtein_distance(a, b)) / longer


class SuggestionEngine:
    """信頼度付きのコード提案を生成する。

    3つの生成器 (エラー種別タグ、コード断片、エラーメッセージ) の結果を連結し、
    信頼度の高い順に安定ソートして上位N件を返す。
    """

    def __init__(self, config: ServerConfig, knowledge: KnowledgeBase, builder: ProjectContextBuilder) -> None:
        self._config = config
        self._knowledge = knowledge
        self._builder = builder

    async def suggest(
        self,
        error_type: str | None = None,
        file_path: str | None = None,
        line: int | None = None,
        code_context: str | None = None,
        error_message: str | None = None,
        project_path: str | None = None,
    ) -> list[CodeSuggestion]:
        """コード提案を生成する。

        コード断片またはエラーメッセージが指定された場合のみプロジェクトコンテキストを構築する。

        Raises:
            ConfigurationError: コンテキスト構築時にプロジェクトパスが存在しない場合。
        """
        suggestions: list[CodeSuggestion] = []
        if error_type:
            suggestions.extend(self.for_error_type(error_type))

        if code_context is None and file_path:
            code_context = self._read_fragment(project_path, file_path, line)

        if code_context or error_message:
            context = await self._builder.build(project_path)
            if code_context:
                suggestions.extend(self.for_code_context(code_context, context))
            if error_message:
                suggestions.extend(self.for_error_message(error_message, context))

        return self.rank(suggestions)

    def rank(self, suggestions: list[CodeSuggestion]) -> list[CodeSuggestion]:
        """重複を除き、信頼度の高い順に安定ソートして上位N件に絞る。"""
        unique: list[CodeSuggestion] = []
        seen: set[tuple[str, str]] = set()
        for suggestion in suggestions:
            key = (suggestion.description, suggestion.snippet)
            if key not in seen:
                seen.add(key)
                unique.append(suggestion)
        unique.sort(key=lambda s: _CONFIDENCE_ORDER[s.confidence])
        return unique[: self._config.max_suggestions]

    def for_error_type(self, error_type: str) -> list[CodeSuggestion]:
        """エラー種別タグに対応する定型の提案を返す。"""
        table = self._knowledge.suggestions
        tag = error_type.strip().lower()
        tag = table.tag_aliases.get(tag, tag)
        templates = table.tags.get(tag)
        if templates is None:
            logger.debug("No suggestion templates for error type %r", error_type)
            return []
        return [CodeSuggestion.model_validate(t.model_dump()) for t in templates]

    def for_code_context(self, code_context: str, context: ProjectContext) -> list[CodeSuggestion]:
        """コード断片に現れるプロジェクトのクラスと、未importの依存パッケージについて提案する。"""
        suggestions: list[CodeSuggestion] = []
        for name, info in context.classes.items():
            if name not in code_context:
                continue
            suggestions.append(
                CodeSuggestion(
                    description=f"Use the {name} class from the project",
                    snippet=f"instance = {name}()",
                    explanation=f"{name} is defined in {info.file_path}:{info.line}",
                    related_classes=[name],
                    confidence="high",
                )
            )

        package_imports = self._knowledge.suggestions.package_imports
        for dependency in context.dependencies:
            module = dependency.replace("-", "_")
            if not re.search(rf"\b{re.escape(module)}\.", code_context):
                continue
            if re.search(rf"^\s*(?:import|from)\s+{re.escape(module)}\b", code_context, re.MULTILINE):
                continue
            statement = package_imports.get(module, f"import {module}")
            suggestions.append(
                CodeSuggestion(
                    description=f"Import the {dependency} package",
                    snippet=statement,
                    explanation=f"{dependency} is a declared dependency but is not imported in this code",
                    required_imports=[statement],
                    confidence="high",
                )
            )
        return suggestions

    def for_error_message(self, error_message: str, context: ProjectContext) -> list[CodeSuggestion]:
        """未解決の識別子を示すメッセージから、似た名前のクラスと既知シンボルのimportを提案する。"""
        lowered = error_message.lower()
        if not any(marker in lowered for marker in _UNRESOLVED_MARKERS) and "import" not in lowered:
            return []

        tokens = [t for t in _TOKEN_SPLIT_RE.split(error_message) if len(t) >= _MIN_TOKEN_LENGTH]
        suggestions: list[CodeSuggestion] = []

        if any(marker in lowered for marker in _UNRESOLVED_MARKERS):
            matched: list[str] = []
            for token in tokens:
                for name in context.classes:
                    if name in matched:
                        continue
                    if similarity(token.lower(), name.lower()) > self._config.similarity_threshold:
                        matched.append(name)
            for name in matched:
                suggestions.append(
                    CodeSuggestion(
                        description=f"Did you mean {name}?",
                        snippet=f"instance = {name}()",
                        explanation=f"{name} is a class in your project with a similar name",
                        related_classes=[name],
                        confidence="medium",
                    )
                )

        symbol_imports = self._knowledge.suggestions.symbol_imports
        for token in dict.fromkeys(tokens):
            statement = symbol_imports.get(token)
            if statement is None:
                continue
            suggestions.append(
                CodeSuggestion(
                    description=f"Import {token}",
                    snippet=statement,
                    explanation=f"Add this import to make {token} available",
                    required_imports=[statement],
                    confidence="high",
                )
            )
        return suggestions

    def _read_fragment(self, project_path: str | None, file_path: str, line: int | None) -> str | None:
        tree = self._builder.open_tree(project_path)
        lines = tree.read_lines(file_path)
        if not lines:
            return None
        window = self._config.related_class_window
        center = line if line is not None else 1
        return "\n".join(lines[max(0, center - 1 - window) : center + window])
