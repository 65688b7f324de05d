"""AnalyzerServiceのユニットテスト。"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from plumb.config import AnalyzerInfo, ServerConfig
from plumb.models.errors import NotAProjectError, ProcessFailureError, ToolUnavailableError
from plumb.services.analyzer import AnalyzerService


def _ruff_line(project: Path, rel: str, code: str, message: str, row: int = 1, column: int = 1) -> str:
    """ruffのjson-lines形式の診断1行を作る。"""
    return json.dumps(
        {
            "cell": None,
            "code": code,
            "end_location": {"column": column + 4, "row": row},
            "filename": str(project / rel),
            "fix": {"applicability": "safe", "edits": [], "message": f"Fix {code}"},
            "location": {"column": column, "row": row},
            "message": message,
            "noqa_row": row,
            "url": f"https://docs.astral.sh/ruff/rules/{code}",
        }
    )


class TestValidateScenarios:
    async def test_clean_project_succeeds(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(0, "", "")):
            result = await analyzer_service.validate(str(sample_project))

        assert result.success is True
        assert result.issues == []
        assert result.files_analyzed == 2
        assert result.message == "No issues found"
        assert result.analyzer_version == "ruff 0.6.9"

    async def test_missing_manifest_fails_with_message(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        (sample_project / "pyproject.toml").unlink()
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock) as mock_run:
            result = await analyzer_service.validate(str(sample_project))

        assert result.success is False
        assert result.issues == []
        assert "pyproject.toml" in result.message
        assert result.error_kind == "NotAProjectError"
        assert result.hint
        mock_run.assert_not_called()

    async def test_garbled_line_is_skipped_and_counted(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        stdout = "\n".join(
            [
                json.dumps(
                    {
                        "file": "src/shop/models.py",
                        "line": 3,
                        "column": 1,
                        "message": "invalid syntax",
                        "severity": "error",
                        "rule": "E999",
                    }
                ),
                '{"file": "src/shop/models.py", "message": ',
            ]
        )
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        assert len(result.issues) == 1
        assert result.issues[0].severity == "error"
        assert result.malformed_lines == 1
        assert "skipped 1 malformed line" in result.message
        assert result.success is False


class TestValidateOutputParsing:
    async def test_counts_well_formed_and_malformed_lines(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        valid = [_ruff_line(sample_project, "src/shop/models.py", "F401", f"unused {i}", row=i + 1) for i in range(3)]
        malformed = ["not json at all", json.dumps(["a", "list"]), json.dumps({"code": "F401"})]
        stdout = "\n".join([valid[0], malformed[0], valid[1], "", malformed[1], valid[2], malformed[2]])

        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        assert len(result.issues) == 3
        assert result.malformed_lines == 3
        assert result.error_count + result.warning_count + result.info_count == len(result.issues)

    async def test_success_derives_from_issues_not_exit_code(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        stdout = _ruff_line(sample_project, "src/shop/models.py", "F401", "`json` imported but unused", row=3, column=8)
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        assert result.success is True
        assert result.exit_code == 1
        assert result.warning_count == 1
        assert result.message == "Found 1 issue (0 errors, 1 warning, 0 info)"

    async def test_normalizes_ruff_fields(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        stdout = _ruff_line(sample_project, "src/shop/models.py", "F401", "`json` imported but unused", row=3, column=8)
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        issue = result.issues[0]
        assert issue.file_path == "src/shop/models.py"
        assert issue.line == 3
        assert issue.column == 8
        assert issue.rule == "F401"
        assert issue.suggestion == "Fix F401"

    async def test_syntax_rules_map_to_error(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        stdout = _ruff_line(sample_project, "src/shop/client.py", "F821", "Undefined name `Ordr`", row=15)
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        assert result.issues[0].severity == "error"
        assert result.success is False

    async def test_excluded_issues_are_dropped(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        (sample_project / "migrations").mkdir()
        (sample_project / "migrations" / "0001_initial.py").write_text("import os\n", encoding="utf-8")
        stdout = "\n".join(
            [
                _ruff_line(sample_project, "migrations/0001_initial.py", "F401", "`os` imported but unused"),
                _ruff_line(sample_project, "src/shop/models.py", "F401", "`json` imported but unused", row=3),
            ]
        )
        with patch.object(
            analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")
        ) as mock_run:
            result = await analyzer_service.validate(str(sample_project), exclude_paths=["migrations"])

        assert [i.file_path for i in result.issues] == ["src/shop/models.py"]
        assert result.files_analyzed == 2
        args = mock_run.call_args.args[0]
        assert args[args.index("--extend-exclude") + 1] == "migrations"


class TestValidateFailures:
    async def test_process_failure_without_diagnostics(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        with patch.object(
            analyzer_service,
            "_run_subprocess",
            new_callable=AsyncMock,
            return_value=(2, "", "error: unexpected argument '--bogus'\n"),
        ):
            result = await analyzer_service.validate(str(sample_project))

        assert result.success is False
        assert result.error_kind == "ProcessFailureError"
        assert result.exit_code == 2
        assert "unexpected argument" in result.message
        assert result.files_analyzed == 2

    async def test_only_excluded_diagnostics_is_not_a_failure(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        (sample_project / "migrations").mkdir()
        (sample_project / "migrations" / "0001_initial.py").write_text("import os\n", encoding="utf-8")
        stdout = _ruff_line(sample_project, "migrations/0001_initial.py", "F401", "`os` imported but unused")
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project), exclude_paths=["migrations"])

        assert result.success is True
        assert result.issues == []
        assert result.error_kind is None
        assert result.exit_code == 1

    async def test_malformed_only_output_is_not_a_failure(
        self, analyzer_service: AnalyzerService, sample_project: Path
    ) -> None:
        with patch.object(
            analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, "not json\n", "")
        ):
            result = await analyzer_service.validate(str(sample_project))

        assert result.error_kind is None
        assert result.malformed_lines == 1

    async def test_undecodable_lines_are_skipped(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        huge_number = '{"message": "x", "line": ' + "1" * 5000 + "}"
        deep_nesting = "[" * 100000
        valid = _ruff_line(sample_project, "src/shop/models.py", "F401", "`json` imported but unused")
        stdout = "\n".join([huge_number, deep_nesting, valid])
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(1, stdout, "")):
            result = await analyzer_service.validate(str(sample_project))

        assert result.error_kind is None
        assert result.malformed_lines == 2
        assert [i.rule for i in result.issues] == ["F401"]

    async def test_run_raises_process_failure(self, analyzer_service: AnalyzerService, sample_project: Path) -> None:
        with patch.object(analyzer_service, "_run_subprocess", new_callable=AsyncMock, return_value=(2, "", "boom")):
            with pytest.raises(ProcessFailureError):
                await analyzer_service.run(str(sample_project))

    async def test_missing_analyzer_reported(self, server_config: ServerConfig, sample_project: Path) -> None:
        service = AnalyzerService(server_config, AnalyzerInfo(command="ruff"))
        result = await service.validate(str(sample_project))

        assert result.success is False
        assert result.error_kind == "ToolUnavailableError"
        assert "ruff" in result.hint

    async def test_manifest_checked_before_analyzer(self, server_config: ServerConfig, tmp_path: Path) -> None:
        service = AnalyzerService(server_config, AnalyzerInfo(command="ruff"))
        with pytest.raises(NotAProjectError):
            service.preflight(str(tmp_path), [])

    async def test_nonexistent_path_is_configuration_error(
        self, analyzer_service: AnalyzerService, tmp_path: Path
    ) -> None:
        result = await analyzer_service.validate(str(tmp_path / "missing"))

        assert result.success is False
        assert result.error_kind == "ConfigurationError"

    async def test_preflight_raises_tool_unavailable(self, server_config: ServerConfig, sample_project: Path) -> None:
        service = AnalyzerService(server_config, AnalyzerInfo(command="ruff"))
        with pytest.raises(ToolUnavailableError):
            service.preflight(str(sample_project), [])


class TestMapSeverity:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("ERROR", "error"), ("Warning", "warning"), ("info", "info"), ("hint", "info"), ("bogus", "info")],
    )
    def test_maps_case_insensitively(self, analyzer_service: AnalyzerService, raw: str, expected: str) -> None:
        assert analyzer_service.map_severity(raw) == expected

    @pytest.mark.parametrize(
        ("rule", "expected"),
        [("E999", "error"), ("F821", "error"), ("F632", "error"), ("F401", "warning"), (None, "warning")],
    )
    def test_missing_severity_uses_rule_prefix(
        self, analyzer_service: AnalyzerService, rule: str | None, expected: str
    ) -> None:
        assert analyzer_service.map_severity(None, rule) == expected
