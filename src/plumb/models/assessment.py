"""コードベース評価のデータモデル。"""

from typing import Literal

from pydantic import BaseModel, Field

from plumb.models.context import DeprecatedUsage

AnalysisType = Literal["deprecated_apis", "complexity", "code_quality", "all"]
ANALYSIS_TYPES: list[str] = ["deprecated_apis", "complexity", "code_quality", "all"]


class DeprecatedApiReport(BaseModel):
    count: int
    usages: list[DeprecatedUsage] = Field(default_factory=list)
    severity: Literal["high", "medium", "low"]
    recommendation: str


class ComplexityReport(BaseModel):
    complexity_score: int
    tier: Literal["simple", "moderate", "complex"]
    class_count: int
    custom_type_count: int
    uses_optional_types: bool
    recommendations: list[str] = Field(default_factory=list)


class CodeQualityReport(BaseModel):
    deprecated_api_count: int
    external_package_count: int
    stdlib_module_count: int
    quality_score: int
    quality_grade: Literal["A", "B", "C", "D", "F"]
    recommendations: list[str] = Field(default_factory=list)


class CodebaseAssessment(BaseModel):
    """コードベース評価の結果。要求された分析のみを含む。"""

    analysis_type: str
    project_path: str
    deprecated_apis: DeprecatedApiReport | None = None
    complexity: ComplexityReport | None = None
    code_quality: CodeQualityReport | None = None
    recommendations: list[str] = Field(default_factory=list)
