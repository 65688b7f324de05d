"""エラーメッセージとプロジェクトの相関付けを行うサービス。"""

import asyncio
import logging
import re

from plumb.config import ServerConfig
from plumb.models.context import ErrorContext, QuickFix
from plumb.services.context import ProjectContextBuilder
from plumb.services.knowledge import KnowledgeBase
from plumb.storage.source_tree import SourceTree

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_CLASS_HEADER_RE = re.compile(r"^\s*class\s+(\w+)")
_MIN_KEYWORD_LENGTH = 3


def extract_keywords(message: str, stop_words: list[str]) -> list[str]:
    """エラーメッセージから検索用キーワードを抽出する。

    記号を空白に置き換えて分割し、ストップワード (大文字小文字を区別しない) と
    2文字以下のトークンを除く。出現順を保ち、重複は除く。
    """
    stops = {w.lower() for w in stop_words}
    keywords: list[str] = []
    for token in _PUNCTUATION_RE.sub(" ", message).split():
        lowered = token.lower()
        if len(token) < _MIN_KEYWORD_LENGTH or lowered in stops or lowered in keywords:
            continue
        keywords.append(lowered)
    return keywords


class ErrorContextResolver:
    """エラーメッセージに対する助言的なコンテキストを組み立てる。

    結果は全て参考情報であり、正しさは保証しない。
    """

    def __init__(self, config: ServerConfig, knowledge: KnowledgeBase, builder: ProjectContextBuilder) -> None:
        self._config = config
        self._knowledge = knowledge
        self._builder = builder

    async def resolve(
        self,
        error_message: str,
        file_path: str | None = None,
        line: int | None = None,
        column: int | None = None,
        project_path: str | None = None,
    ) -> ErrorContext:
        """エラーメッセージと位置からErrorContextを構築する。

        Args:
            error_message: 解析対象のエラーメッセージ。
            file_path: エラーが発生したファイル (プロジェクトルートからの相対パスまたは絶対パス)。
            line: エラーの行番号 (1始まり)。
            column: エラーの列番号。
            project_path: プロジェクトのルートディレクトリ。

        Raises:
            ConfigurationError: プロジェクトパスが存在しない場合。
        """
        tree = self._builder.open_tree(project_path)
        keywords = extract_keywords(error_message, self._knowledge.errors.stop_words)
        similar = await asyncio.to_thread(self.find_similar_issues, tree, keywords)
        related = await asyncio.to_thread(self.find_related_classes, tree, file_path, line)

        return ErrorContext(
            error_message=error_message,
            file_path=file_path,
            line=line,
            column=column,
            similar_issues=similar,
            solutions=self.lookup_solutions(error_message),
            related_classes=related,
            available_apis=self.lookup_apis(error_message),
            import_suggestions=self.lookup_imports(error_message),
        )

    def find_similar_issues(self, tree: SourceTree, keywords: list[str]) -> list[str]:
        """キーワードとエラーらしい目印の両方を含む行を、ファイル走査順に上限件数まで集める。"""
        if not keywords:
            return []
        markers = [m.lower() for m in self._knowledge.errors.error_markers]
        limit = self._config.similar_issue_limit
        found: list[str] = []
        for rel in tree.files():
            for number, text in enumerate(tree.read_lines(rel), start=1):
                lowered = text.lower()
                if any(k in lowered for k in keywords) and any(m in lowered for m in markers):
                    found.append(f"{rel}:{number}: {text.strip()}")
                    if len(found) >= limit:
                        return found
        return found

    def find_related_classes(self, tree: SourceTree, file_path: str | None, line: int | None) -> list[str]:
        """エラー位置の前後の行にあるクラス宣言の名前を返す。位置が不明な場合はファイル先頭を中心とする。"""
        if not file_path:
            return []
        path = tree.resolve(file_path)
        if not path.is_file():
            logger.debug("Related class lookup skipped, file not found: %s", file_path)
            return []

        lines = tree.read_lines(str(path))
        window = self._config.related_class_window
        center = line if line is not None else 1
        start = max(0, center - 1 - window)
        end = min(len(lines), center + window)

        names: list[str] = []
        for text in lines[start:end]:
            match = _CLASS_HEADER_RE.match(text)
            if match and match.group(1) not in names:
                names.append(match.group(1))
        return names

    def lookup_solutions(self, error_message: str) -> list[str]:
        """解決策テーブルから、メッセージに含まれるキーワードの解決策を表の順に返す。"""
        lowered = error_message.lower()
        solutions: list[str] = []
        for entry in self._knowledge.errors.remediations:
            if entry.keyword.lower() in lowered:
                solutions.extend(s for s in entry.solutions if s not in solutions)
        return solutions

    def lookup_apis(self, error_message: str) -> list[str]:
        lowered = error_message.lower()
        apis: list[str] = []
        for entry in self._knowledge.errors.api_hints:
            if entry.keyword.lower() in lowered:
                apis.extend(a for a in entry.apis if a not in apis)
        return apis

    def lookup_imports(self, error_message: str) -> list[str]:
        lowered = error_message.lower()
        imports: list[str] = []
        for entry in self._knowledge.errors.import_hints:
            if entry.keyword.lower() in lowered:
                imports.extend(i for i in entry.imports if i not in imports)
        return imports

    def quick_fixes(self, error_message: str) -> list[QuickFix]:
        """メッセージのキーワードに対応する定型の修正例を返す。"""
        lowered = error_message.lower()
        return [
            QuickFix(issue=entry.issue, fix=entry.fix, example=entry.example)
            for entry in self._knowledge.errors.quick_fixes
            if entry.keyword.lower() in lowered
        ]
