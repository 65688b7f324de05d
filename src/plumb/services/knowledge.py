"""固定知識テーブルの読み込みを行うサービス。"""

import logging
from pathlib import Path
from typing import Any

import yaml

from plumb.models.errors import ConfigurationError
from plumb.models.knowledge import ErrorKnowledge, SuggestionKnowledge

logger = logging.getLogger(__name__)

_ERROR_CONTEXT_FILE = "error-context.yaml"
_SUGGESTIONS_FILE = "suggestions.yaml"


class KnowledgeBase:
    """config/knowledge 配下のYAMLテーブルを読み込んで保持する。

    テーブルは初回アクセス時に一度だけ読み込み、以降は実行中に変更しない。
    ファイルが存在しない場合は空のテーブルとして扱う。
    """

    def __init__(self, config_dir: Path) -> None:
        self._knowledge_dir = config_dir / "knowledge"
        self._errors: ErrorKnowledge | None = None
        self._suggestions: SuggestionKnowledge | None = None

    def _load_yaml(self, file_name: str) -> dict[str, Any]:
        path = self._knowledge_dir / file_name
        if not path.exists():
            logger.warning("Knowledge table not found: %s", path)
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid knowledge table {path}: {e}",
                hint="Fix the YAML syntax or set PLUMB_CONFIG_DIR to a valid config directory.",
            ) from e
        return data or {}

    @property
    def errors(self) -> ErrorKnowledge:
        """エラーコンテキスト用テーブル。"""
        if self._errors is None:
            self._errors = ErrorKnowledge.model_validate(self._load_yaml(_ERROR_CONTEXT_FILE))
        return self._errors

    @property
    def suggestions(self) -> SuggestionKnowledge:
        """コード提案用テーブル。"""
        if self._suggestions is None:
            self._suggestions = SuggestionKnowledge.model_validate(self._load_yaml(_SUGGESTIONS_FILE))
        return self._suggestions
