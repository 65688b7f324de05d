"""プロジェクトコンテキストに基づくコードベース評価を行うサービス。"""

import logging
from typing import Any, Literal

from plumb.models.assessment import (
    ANALYSIS_TYPES,
    AnalysisType,
    CodebaseAssessment,
    CodeQualityReport,
    ComplexityReport,
    DeprecatedApiReport,
)
from plumb.models.context import ProjectContext
from plumb.services.context import ProjectContextBuilder

logger = logging.getLogger(__name__)


def complexity_score(class_count: int, custom_type_count: int) -> int:
    return class_count * 2 + custom_type_count * 3


def complexity_tier(class_count: int, custom_type_count: int) -> Literal["simple", "moderate", "complex"]:
    if class_count > 50 or custom_type_count > 40:
        return "complex"
    if class_count > 20 or custom_type_count > 20:
        return "moderate"
    return "simple"


def quality_score(deprecated_count: int, external_count: int) -> int:
    """非推奨1件につき5点、外部パッケージ1件につき2点を100点から引く (0〜100に丸める)。"""
    return max(0, min(100, 100 - deprecated_count * 5 - external_count * 2))


def quality_grade(score: int) -> Literal["A", "B", "C", "D", "F"]:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def project_insights(context: ProjectContext) -> dict[str, str]:
    """プロジェクトコンテキストの概要を短い所見にまとめる。"""
    return {
        "complexity": "Large project with many classes"
        if len(context.classes) > 10
        else "Small to medium project",
        "typing": "Uses optional type annotations"
        if context.code_style.uses_optional_types
        else "Consider annotating optional values",
        "dependencies": "Many dependencies - review necessity"
        if len(context.dependencies) > 5
        else "Lightweight dependencies",
        "deprecated_usage": "Found deprecated APIs - consider updating"
        if context.deprecated_usages
        else "No deprecated APIs found",
    }


class AssessmentService:
    """非推奨API・複雑度・品質の観点でコードベースを評価する。"""

    def __init__(self, builder: ProjectContextBuilder) -> None:
        self._builder = builder

    async def assess(self, analysis_type: AnalysisType = "all", project_path: str | None = None) -> CodebaseAssessment:
        """コードベースを評価する。

        Args:
            analysis_type: deprecated_apis / complexity / code_quality / all のいずれか。
            project_path: プロジェクトのルートディレクトリ。

        Raises:
            ValueError: analysis_typeが不正な場合。
            ConfigurationError: プロジェクトパスが存在しない場合。
        """
        if analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"Invalid analysis_type: {analysis_type}. Valid types: {', '.join(ANALYSIS_TYPES)}")

        context = await self._builder.build(project_path)
        assessment = CodebaseAssessment(analysis_type=analysis_type, project_path=context.project_path)
        if analysis_type in ("deprecated_apis", "all"):
            assessment.deprecated_apis = self.deprecated_apis(context)
        if analysis_type in ("complexity", "all"):
            assessment.complexity = self.complexity(context)
        if analysis_type in ("code_quality", "all"):
            assessment.code_quality = self.code_quality(context)
        assessment.recommendations = self._summary_recommendations(assessment)
        logger.debug("Assessed %s (%s)", context.project_path, analysis_type)
        return assessment

    def deprecated_apis(self, context: ProjectContext) -> DeprecatedApiReport:
        count = len(context.deprecated_usages)
        if count > 10:
            recommendation = "Many deprecated APIs found - prioritize updating these"
        elif count > 0:
            recommendation = "Consider updating deprecated APIs for future compatibility"
        else:
            recommendation = "No deprecated APIs found - codebase is modern"
        severity: Literal["high", "medium", "low"] = "high" if count > 20 else "medium" if count > 5 else "low"
        return DeprecatedApiReport(
            count=count,
            usages=context.deprecated_usages,
            severity=severity,
            recommendation=recommendation,
        )

    def complexity(self, context: ProjectContext) -> ComplexityReport:
        classes = len(context.classes)
        custom_types = len(context.type_inventory.custom_types)
        recommendations: list[str] = []
        if classes > 20:
            recommendations.append("Consider breaking down large modules")
        if not context.code_style.uses_optional_types:
            recommendations.append("Annotate optional values with Optional[...] or X | None")
        if custom_types > 30:
            recommendations.append("Consider reducing custom type complexity")
        return ComplexityReport(
            complexity_score=complexity_score(classes, custom_types),
            tier=complexity_tier(classes, custom_types),
            class_count=classes,
            custom_type_count=custom_types,
            uses_optional_types=context.code_style.uses_optional_types,
            recommendations=recommendations,
        )

    def code_quality(self, context: ProjectContext) -> CodeQualityReport:
        deprecated = len(context.deprecated_usages)
        external = len(context.external_packages)
        score = quality_score(deprecated, external)
        recommendations: list[str] = []
        if deprecated > 0:
            recommendations.append("Update deprecated APIs for better maintainability")
        if external > 10:
            recommendations.append("Review necessity of all external packages")
        return CodeQualityReport(
            deprecated_api_count=deprecated,
            external_package_count=external,
            stdlib_module_count=len(context.stdlib_modules),
            quality_score=score,
            quality_grade=quality_grade(score),
            recommendations=recommendations,
        )

    @staticmethod
    def _summary_recommendations(assessment: CodebaseAssessment) -> list[str]:
        recommendations: list[str] = []
        if assessment.deprecated_apis and assessment.deprecated_apis.count > 0:
            recommendations.append(
                f"Update {assessment.deprecated_apis.count} deprecated APIs for better maintainability"
            )
        if assessment.complexity and assessment.complexity.tier == "complex":
            recommendations.append("Consider breaking down large modules for better maintainability")
        if assessment.code_quality and assessment.code_quality.quality_grade != "A":
            recommendations.append("Improve code quality to achieve grade A")
        return recommendations

    def as_payload(self, assessment: CodebaseAssessment) -> dict[str, Any]:
        """ツール応答用に、要求されなかった分析を除いて辞書化する。"""
        sections = ("deprecated_apis", "complexity", "code_quality")
        skipped = {name for name in sections if getattr(assessment, name) is None}
        return assessment.model_dump(mode="json", exclude=skipped)
