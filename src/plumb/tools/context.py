"""プロジェクト理解系のツール定義。"""

from typing import Annotated, Any

from pydantic import Field

from plumb.models.errors import PlumbError
from plumb.services.assessment import project_insights
from plumb.services.context import ProjectContextBuilder
from plumb.services.error_context import ErrorContextResolver
from plumb.tools.registry import ToolRegistry, error_payload


def register_context_tools(
    registry: ToolRegistry,
    builder: ProjectContextBuilder,
    resolver: ErrorContextResolver,
) -> None:
    """プロジェクトコンテキスト・エラーコンテキストのツールを登録する。"""

    @registry.tool(
        examples=[
            {"description": "Analyze the current project", "arguments": {}},
            {"description": "Analyze a specific path", "arguments": {"project_path": "/path/to/project"}},
        ]
    )
    async def analyze_project_context(
        project_path: Annotated[str | None, Field(description="解析対象のプロジェクトルート")] = None,
        exclude_paths: Annotated[list[str] | None, Field(description="走査対象から外すパスのフラグメント")] = None,
    ) -> dict[str, Any]:
        """Analyze project structure, dependencies and available APIs.

        Scans the source tree with line-pattern heuristics and returns the
        declared dependencies, imports per file, the class inventory, deprecated
        API markers, the code style profile and the type inventory.
        """
        try:
            context = await builder.build(project_path, exclude_paths)
        except PlumbError as e:
            return error_payload(e)
        return {
            "success": True,
            **context.model_dump(mode="json"),
            "class_count": len(context.classes),
            "insights": project_insights(context),
        }

    @registry.tool(
        examples=[
            {
                "description": "Get help for a None error",
                "arguments": {"error_message": "'NoneType' object has no attribute 'strip'"},
            },
            {
                "description": "Get context at a location",
                "arguments": {"error_message": "Undefined name `Path`", "file_path": "app/main.py", "line": 10},
            },
        ]
    )
    async def get_error_context(
        error_message: Annotated[str, Field(min_length=1, description="解析するエラーメッセージ")],
        file_path: Annotated[str | None, Field(description="エラーが発生したファイル")] = None,
        line: Annotated[int | None, Field(ge=1, description="エラーの行番号")] = None,
        column: Annotated[int | None, Field(ge=1, description="エラーの列番号")] = None,
        project_path: Annotated[str | None, Field(description="プロジェクトのルートディレクトリ")] = None,
    ) -> dict[str, Any]:
        """Get context and remediation hints for a specific error message.

        Returns similar error-handling lines in the project, known solutions,
        classes declared near the error location, relevant APIs, import
        suggestions and quick fixes. All results are advisory.
        """
        quick_fixes: list[dict[str, Any]] = []
        try:
            quick_fixes = [fix.model_dump() for fix in resolver.quick_fixes(error_message)]
            context = await resolver.resolve(error_message, file_path, line, column, project_path)
        except PlumbError as e:
            return {**error_payload(e), "quick_fixes": quick_fixes}
        return {"success": True, **context.model_dump(mode="json"), "quick_fixes": quick_fixes}
