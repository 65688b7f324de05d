"""コード提案・コードベース評価のツール定義。"""

from typing import Annotated, Any

from pydantic import Field

from plumb.models.assessment import AnalysisType
from plumb.models.errors import PlumbError
from plumb.services.assessment import AssessmentService
from plumb.services.suggestions import SuggestionEngine
from plumb.tools.registry import ToolRegistry, error_payload


def register_assist_tools(
    registry: ToolRegistry,
    engine: SuggestionEngine,
    assessment_service: AssessmentService,
) -> None:
    """提案・評価のツールを登録する。"""

    @registry.tool(
        examples=[
            {"description": "Get None-safety suggestions", "arguments": {"error_type": "null"}},
            {
                "description": "Get async suggestions",
                "arguments": {"error_type": "async", "file_path": "app/main.py", "line": 10},
            },
            {
                "description": "Get suggestions for an error message",
                "arguments": {"error_message": "Undefined name `Sessoin`"},
            },
        ]
    )
    async def get_suggestions(
        error_type: Annotated[str | None, Field(description="エラー種別 (null, async, file, list, key, http, type)")] = None,
        file_path: Annotated[str | None, Field(description="提案が必要なファイル")] = None,
        line: Annotated[int | None, Field(ge=1, description="コンテキストとする行番号")] = None,
        code_context: Annotated[str | None, Field(description="周辺のコード断片")] = None,
        error_message: Annotated[str | None, Field(description="具体的なエラーメッセージ")] = None,
        project_path: Annotated[str | None, Field(description="プロジェクトのルートディレクトリ")] = None,
    ) -> dict[str, Any]:
        """Get confidence-ranked code suggestions.

        Combines fixed snippets for the error type, project classes and
        dependencies referenced by the code context, and "did you mean"
        matches for unresolved names in the error message. Highest confidence
        first, at most five suggestions.
        """
        try:
            suggestions = await engine.suggest(error_type, file_path, line, code_context, error_message, project_path)
        except PlumbError as e:
            return error_payload(e)
        return {
            "success": True,
            "suggestions": [s.model_dump(mode="json") for s in suggestions],
            "count": len(suggestions),
        }

    @registry.tool(
        examples=[
            {"description": "Find deprecated APIs", "arguments": {"analysis_type": "deprecated_apis"}},
            {"description": "Score code quality", "arguments": {"analysis_type": "code_quality"}},
            {"description": "Run every analysis", "arguments": {}},
        ]
    )
    async def assess_codebase(
        analysis_type: Annotated[
            AnalysisType, Field(description="deprecated_apis / complexity / code_quality / all")
        ] = "all",
        project_path: Annotated[str | None, Field(description="プロジェクトのルートディレクトリ")] = None,
    ) -> dict[str, Any]:
        """Assess a codebase for deprecated APIs, complexity and code quality.

        Scores are derived from the project context: complexity from class and
        custom type counts, quality from deprecated API markers and external
        package usage (graded A to F).
        """
        try:
            assessment = await assessment_service.assess(analysis_type, project_path)
        except PlumbError as e:
            return error_payload(e)
        return {"success": True, **assessment_service.as_payload(assessment)}
