"""stdioディスパッチャー経由でのツール呼び出しの統合テスト。"""

import io
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from plumb.config import AnalyzerInfo, ServerConfig
from plumb.protocol.dispatcher import Dispatcher
from plumb.server import create_dispatcher
from plumb.services.analyzer import AnalyzerService


@pytest.fixture
def dispatcher(server_config: ServerConfig, analyzer_info: AnalyzerInfo) -> Dispatcher:
    return create_dispatcher(server_config, analyzer_info)


async def _exchange(dispatcher: Dispatcher, *requests: dict[str, Any]) -> list[dict[str, Any]]:
    """リクエストを1行ずつ流し、応答フレームを順に返す。"""
    reader = io.StringIO("".join(json.dumps(r) + "\n" for r in requests))
    writer = io.StringIO()
    await dispatcher.serve(reader, writer)
    return [json.loads(line) for line in writer.getvalue().splitlines()]


def _call(request_id: int, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": {"name": name, "arguments": arguments}}


class TestStdioFlow:
    async def test_validate_project(self, dispatcher: Dispatcher, sample_project: Path) -> None:
        with patch.object(AnalyzerService, "_run_subprocess", new_callable=AsyncMock, return_value=(0, "", "")):
            (response,) = await _exchange(dispatcher, _call(1, "validate_project", {"project_path": str(sample_project)}))

        result = response["result"]
        assert result["success"] is True
        assert result["files_analyzed"] == 2
        assert result["error_count"] == 0

    async def test_validate_missing_manifest_is_a_tool_result(self, dispatcher: Dispatcher, tmp_path: Path) -> None:
        (response,) = await _exchange(dispatcher, _call(2, "validate_project", {"project_path": str(tmp_path)}))

        assert "error" not in response
        assert response["result"]["success"] is False
        assert response["result"]["error_kind"] == "NotAProjectError"

    async def test_context_then_error_then_suggestions(self, dispatcher: Dispatcher, sample_project: Path) -> None:
        project = str(sample_project)
        context, error, suggestions, assessment = await _exchange(
            dispatcher,
            _call(1, "analyze_project_context", {"project_path": project}),
            _call(
                2,
                "get_error_context",
                {
                    "error_message": "NameError: name 'Path' is not defined",
                    "file_path": "src/shop/models.py",
                    "line": 20,
                    "project_path": project,
                },
            ),
            _call(3, "get_suggestions", {"error_message": "Undefined name `Ordr`", "project_path": project}),
            _call(4, "assess_codebase", {"analysis_type": "complexity", "project_path": project}),
        )

        assert context["result"]["class_count"] == 3
        assert context["result"]["dependencies"] == ["httpx", "pydantic", "pytest"]
        assert error["result"]["related_classes"] == ["Customer", "Order"]
        assert error["result"]["import_suggestions"] == ["from pathlib import Path"]
        assert error["result"]["quick_fixes"][0]["issue"] == "Undefined name"
        assert suggestions["result"]["suggestions"][0]["description"] == "Did you mean Order?"
        assert set(assessment["result"]) == {
            "success",
            "analysis_type",
            "project_path",
            "complexity",
            "recommendations",
        }

    async def test_missing_project_path(self, dispatcher: Dispatcher, tmp_path: Path) -> None:
        (response,) = await _exchange(
            dispatcher, _call(5, "analyze_project_context", {"project_path": str(tmp_path / "nope")})
        )

        assert response["result"]["success"] is False
        assert response["result"]["error"] == "ConfigurationError"
