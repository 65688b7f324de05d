"""KnowledgeBaseのユニットテスト。"""

from pathlib import Path

import pytest

from plumb.models.errors import ConfigurationError
from plumb.services.knowledge import KnowledgeBase


class TestKnowledgeBase:
    def test_loads_error_tables(self, knowledge: KnowledgeBase) -> None:
        tables = knowledge.errors

        assert "the" in tables.stop_words
        # YAMLの真偽値として解釈されないこと
        assert "on" in tables.stop_words
        assert "no" in tables.stop_words
        assert tables.remediations[0].keyword == "none"
        assert {fix.keyword for fix in tables.quick_fixes} == {"none", "not defined", "await"}

    def test_loads_suggestion_tables(self, knowledge: KnowledgeBase) -> None:
        tables = knowledge.suggestions

        assert tables.tag_aliases["null"] == "none"
        assert tables.tag_aliases["async"] == "await"
        assert tables.symbol_imports["Path"] == "from pathlib import Path"
        assert all(tables.tags[tag] for tag in ("none", "await", "file", "list", "key", "http", "type"))

    def test_tables_are_cached(self, knowledge: KnowledgeBase) -> None:
        assert knowledge.errors is knowledge.errors
        assert knowledge.suggestions is knowledge.suggestions

    def test_missing_directory_yields_empty_tables(self, tmp_path: Path) -> None:
        knowledge = KnowledgeBase(tmp_path)

        assert knowledge.errors.remediations == []
        assert knowledge.suggestions.tags == {}

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        (tmp_path / "knowledge").mkdir()
        (tmp_path / "knowledge" / "error-context.yaml").write_text("stop_words: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            _ = KnowledgeBase(tmp_path).errors
