"""バリデーション関連のデータモデル。"""

from typing import Literal

from pydantic import BaseModel, Field, computed_field

Severity = Literal["error", "warning", "info"]


class ValidationIssue(BaseModel):
    """アナライザーが報告した個別の診断。"""

    file_path: str
    message: str
    severity: Severity
    line: int | None = None
    column: int | None = None
    rule: str | None = None
    suggestion: str | None = None


class ValidationResult(BaseModel):
    """プロジェクトバリデーションの実行結果。"""

    success: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    files_analyzed: int = 0
    duration_ms: float = 0.0
    message: str
    malformed_lines: int = 0
    exit_code: int | None = None
    analyzer_version: str | None = None
    error_kind: str | None = None
    hint: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "warning")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def info_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "info")
