"""プロジェクトコンテキスト・エラーコンテキスト・提案のデータモデル。"""

from typing import Literal

from pydantic import BaseModel, Field

Confidence = Literal["high", "medium", "low"]


class ClassInfo(BaseModel):
    """ソースから行パターンで抽出したクラス情報。"""

    name: str
    file_path: str
    line: int
    methods: list[str] = Field(default_factory=list)
    properties: list[str] = Field(default_factory=list)
    constructors: list[str] = Field(default_factory=list)
    superclass: str | None = None
    interfaces: list[str] = Field(default_factory=list)


class DeprecatedUsage(BaseModel):
    """非推奨マーカーの検出位置。"""

    file_path: str
    line: int
    api: str
    replacement: str | None = None
    message: str


class CodeStyleProfile(BaseModel):
    """プロジェクト全体のコードスタイル傾向。"""

    uses_optional_types: bool = False
    uses_mixins: bool = False
    uses_dataclasses: bool = False
    uses_async: bool = False
    async_patterns: list[str] = Field(default_factory=list)
    naming_conventions: dict[str, int] = Field(default_factory=dict)


class TypeInventory(BaseModel):
    """型定義の一覧。"""

    custom_types: list[str] = Field(default_factory=list)
    generic_types: list[str] = Field(default_factory=list)
    type_aliases: dict[str, str] = Field(default_factory=dict)


class ProjectContext(BaseModel):
    """リクエスト毎に再構築されるプロジェクトの構造モデル。"""

    project_path: str
    dependencies: list[str] = Field(default_factory=list)
    dependency_constraints: dict[str, str] = Field(default_factory=dict)
    imports: dict[str, list[str]] = Field(default_factory=dict)
    stdlib_modules: list[str] = Field(default_factory=list)
    external_packages: list[str] = Field(default_factory=list)
    classes: dict[str, ClassInfo] = Field(default_factory=dict)
    # 同名クラスが複数ファイルで定義されている場合の定義元一覧
    class_collisions: dict[str, list[str]] = Field(default_factory=dict)
    deprecated_usages: list[DeprecatedUsage] = Field(default_factory=list)
    code_style: CodeStyleProfile = Field(default_factory=CodeStyleProfile)
    type_inventory: TypeInventory = Field(default_factory=TypeInventory)
    files_scanned: int = 0


class ErrorContext(BaseModel):
    """エラーメッセージと位置に対する助言的なコンテキスト。"""

    error_message: str
    file_path: str | None = None
    line: int | None = None
    column: int | None = None
    similar_issues: list[str] = Field(default_factory=list)
    solutions: list[str] = Field(default_factory=list)
    related_classes: list[str] = Field(default_factory=list)
    available_apis: list[str] = Field(default_factory=list)
    import_suggestions: list[str] = Field(default_factory=list)


class QuickFix(BaseModel):
    """エラーメッセージのキーワードに対する定型の修正例。"""

    issue: str
    fix: str
    example: str


class CodeSuggestion(BaseModel):
    """信頼度付きのコード提案。"""

    description: str
    snippet: str
    explanation: str
    required_imports: list[str] = Field(default_factory=list)
    related_classes: list[str] = Field(default_factory=list)
    confidence: Confidence
