"""検証系のツール定義。"""

from typing import Annotated, Any

from pydantic import Field

from plumb.services.analyzer import AnalyzerService
from plumb.tools.registry import ToolRegistry


def register_validation_tools(registry: ToolRegistry, analyzer_service: AnalyzerService) -> None:
    """プロジェクト検証ツールを登録する。"""

    @registry.tool(
        examples=[
            {"description": "Quick validation with defaults", "arguments": {}},
            {"description": "Validate a specific project", "arguments": {"project_path": "/path/to/project"}},
            {"description": "Skip generated code", "arguments": {"exclude_paths": ["migrations", "src/gen"]}},
            {"description": "Verbose validation", "arguments": {"verbose": True}},
        ]
    )
    async def validate_project(
        project_path: Annotated[str | None, Field(description="プロジェクトのルートディレクトリ。省略時はカレントディレクトリ")] = None,
        exclude_paths: Annotated[list[str] | None, Field(description="解析対象から外すパスのフラグメント")] = None,
        verbose: Annotated[bool, Field(description="不正な出力行などの詳細をログに出す")] = False,
    ) -> dict[str, Any]:
        """Validate a Python project with the configured static analyzer.

        Runs the analyzer over the project and returns the structured issues,
        severity counts, the number of analyzed files and a summary message.
        Missing manifests, a missing analyzer executable or a crashed analyzer
        run are reported with success=false, an error_kind and a hint.
        """
        result = await analyzer_service.validate(project_path, exclude_paths, verbose)
        return result.model_dump(mode="json")
