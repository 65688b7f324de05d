"""YAMLで定義する固定知識テーブルのデータモデル。"""

from pydantic import BaseModel, Field

from plumb.models.context import Confidence


class Remediation(BaseModel):
    """エラーメッセージのキーワードに対応する解決策。"""

    keyword: str
    solutions: list[str]


class ApiHint(BaseModel):
    keyword: str
    apis: list[str]


class ImportHint(BaseModel):
    keyword: str
    imports: list[str]


class QuickFixEntry(BaseModel):
    keyword: str
    issue: str
    fix: str
    example: str


class ErrorKnowledge(BaseModel):
    """エラーコンテキスト解決用の知識テーブル。"""

    stop_words: list[str] = Field(default_factory=list)
    error_markers: list[str] = Field(default_factory=lambda: ["error", "exception"])
    remediations: list[Remediation] = Field(default_factory=list)
    api_hints: list[ApiHint] = Field(default_factory=list)
    import_hints: list[ImportHint] = Field(default_factory=list)
    quick_fixes: list[QuickFixEntry] = Field(default_factory=list)


class SnippetTemplate(BaseModel):
    """エラー種別タグに対応する定型コード提案。"""

    description: str
    snippet: str
    explanation: str
    required_imports: list[str] = Field(default_factory=list)
    related_classes: list[str] = Field(default_factory=list)
    confidence: Confidence = "medium"


class SuggestionKnowledge(BaseModel):
    """コード提案用の知識テーブル。"""

    tag_aliases: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, list[SnippetTemplate]] = Field(default_factory=dict)
    symbol_imports: dict[str, str] = Field(default_factory=dict)
    package_imports: dict[str, str] = Field(default_factory=dict)
