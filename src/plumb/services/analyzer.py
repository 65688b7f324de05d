"""外部静的解析ツールの実行と診断出力の解釈を行うサービス。"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any

from plumb.config import AnalyzerInfo, ServerConfig
from plumb.models.errors import (
    DiagnosticParseError,
    NotAProjectError,
    PlumbError,
    ProcessFailureError,
    ToolUnavailableError,
)
from plumb.models.validation import Severity, ValidationIssue, ValidationResult
from plumb.storage.source_tree import SourceTree, is_excluded

logger = logging.getLogger(__name__)

_SEVERITY_ALIASES: dict[str, Severity] = {
    "error": "error",
    "fatal": "error",
    "warning": "warning",
    "warn": "warning",
    "info": "info",
    "information": "info",
    "hint": "info",
    "note": "info",
}

_FILE_KEYS = ("file", "filename", "path", "file_path")
_RULE_KEYS = ("rule", "code")

# verboseログに出す不正行の最大文字数
_PREVIEW_LENGTH = 50


class AnalyzerService:
    """外部アナライザーを起動し、その出力を構造化された検証結果に変換する。"""

    def __init__(self, config: ServerConfig, analyzer: AnalyzerInfo) -> None:
        self._config = config
        self._analyzer = analyzer

    @property
    def analyzer(self) -> AnalyzerInfo:
        return self._analyzer

    async def validate(
        self,
        project_path: str | None = None,
        exclude_paths: list[str] | None = None,
        verbose: bool = False,
    ) -> ValidationResult:
        """プロジェクトを検証する。失敗も含めて常にValidationResultを返す。

        Args:
            project_path: プロジェクトのルートディレクトリ。Noneの場合は設定のデフォルト。
            exclude_paths: 解析対象から外すパスのフラグメント。
            verbose: Trueの場合、不正行などの詳細をINFOレベルでログ出力する。

        Returns:
            検証結果。前提条件の不備やツールの異常終了は success=False と
            error_kind・hint で表す。
        """
        started = time.perf_counter()
        try:
            return await self.run(project_path, exclude_paths, verbose, started=started)
        except PlumbError as e:
            logger.warning("Validation failed: %s", e)
            return ValidationResult(
                success=False,
                message=str(e),
                files_analyzed=getattr(e, "files_analyzed", 0),
                duration_ms=_elapsed_ms(started),
                exit_code=getattr(e, "exit_code", None),
                analyzer_version=self._analyzer.version,
                error_kind=type(e).__name__,
                hint=e.hint,
            )

    async def run(
        self,
        project_path: str | None = None,
        exclude_paths: list[str] | None = None,
        verbose: bool = False,
        *,
        started: float | None = None,
    ) -> ValidationResult:
        """前提条件を確認してアナライザーを実行する。

        Raises:
            ConfigurationError: プロジェクトパスが存在しない場合。
            NotAProjectError: マニフェストが存在しない場合。
            ToolUnavailableError: アナライザーがPATH上に見つからない場合。
            ProcessFailureError: 非ゼロ終了で出力行が1行も得られなかった場合。
        """
        started = time.perf_counter() if started is None else started
        user_excludes = list(exclude_paths or [])
        tree = self.preflight(project_path, user_excludes)

        args = self._build_args(user_excludes)
        logger.debug("Running analyzer: %s (cwd=%s)", " ".join(args), tree.root)
        exit_code, stdout, stderr = await self._run_subprocess(args, cwd=str(tree.root))

        issues, malformed = self.parse_output(stdout, tree.root, verbose=verbose)
        # 異常終了の判定は除外フィルタを適用する前の出力で行う
        if exit_code != 0 and not issues and not malformed:
            raise ProcessFailureError(self._analyzer.command, exit_code, stderr, files_analyzed=tree.count())
        issues = [
            issue
            for issue in issues
            if not is_excluded(issue.file_path, [*self._config.default_excludes, *user_excludes])
        ]

        if stderr.strip():
            logger.debug("Analyzer stderr: %s", stderr.strip())

        has_errors = any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            success=not has_errors,
            issues=issues,
            files_analyzed=tree.count(),
            duration_ms=_elapsed_ms(started),
            message=_summarize(issues, malformed),
            malformed_lines=malformed,
            exit_code=exit_code,
            analyzer_version=self._analyzer.version,
        )

    def preflight(self, project_path: str | None, exclude_paths: list[str]) -> SourceTree:
        """パス・マニフェスト・実行ファイルの順に前提条件を確認する。"""
        root = Path(project_path) if project_path else self._config.default_project_path
        tree = SourceTree(
            root,
            [*self._config.default_excludes, *exclude_paths],
            self._config.source_suffixes,
        )
        if not any((tree.root / name).is_file() for name in self._config.manifest_names):
            raise NotAProjectError(str(root), self._config.manifest_names)
        if not self._analyzer.available:
            raise ToolUnavailableError(self._analyzer.command)
        return tree

    def _build_args(self, exclude_paths: list[str]) -> list[str]:
        args = [self._analyzer.path or self._analyzer.command, *self._config.analyzer_args]
        for fragment in exclude_paths:
            args.extend([self._config.analyzer_exclude_flag, fragment])
        args.append(".")
        return args

    def parse_output(self, stdout: str, root: Path, verbose: bool = False) -> tuple[list[ValidationIssue], int]:
        """1行1JSONの出力を解釈する。

        解釈できない行は実行全体を中断せずにスキップし、その件数を返す。
        空行は数えない。

        Returns:
            (診断のリスト, 不正行の件数) のタプル。
        """
        issues: list[ValidationIssue] = []
        malformed = 0
        for line_number, raw in enumerate(stdout.splitlines(), start=1):
            if not raw.strip():
                continue
            try:
                issues.append(self.parse_line(raw, line_number, root))
            except DiagnosticParseError as e:
                malformed += 1
                log = logger.info if verbose else logger.debug
                log("%s (%s)", e, raw[:_PREVIEW_LENGTH])
        return issues, malformed

    def parse_line(self, raw: str, line_number: int, root: Path) -> ValidationIssue:
        """診断1行をValidationIssueに変換する。

        Raises:
            DiagnosticParseError: JSONオブジェクトでない、またはメッセージを欠く場合。
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DiagnosticParseError(line_number, f"invalid JSON ({e.msg})") from e
        except (ValueError, RecursionError) as e:
            # 桁数上限を超える整数や深すぎる入れ子
            raise DiagnosticParseError(line_number, f"undecodable JSON ({type(e).__name__})") from e
        if not isinstance(data, dict):
            raise DiagnosticParseError(line_number, "not a JSON object")

        message = data.get("message")
        if not isinstance(message, str) or not message:
            raise DiagnosticParseError(line_number, "missing message")

        rule = _first_str(data, _RULE_KEYS)
        line, column = _location(data)
        location = data.get("location")
        file_path = _first_str(data, _FILE_KEYS)
        if file_path is None and isinstance(location, dict):
            file_path = _first_str(location, _FILE_KEYS)
        return ValidationIssue(
            file_path=self._relative_path(file_path or "unknown", root),
            message=message,
            severity=self.map_severity(data.get("severity"), rule),
            line=line,
            column=column,
            rule=rule,
            suggestion=_suggestion(data),
        )

    def map_severity(self, raw: Any, rule: str | None = None) -> Severity:
        """severityを列挙値に写像する。

        文字列は大文字小文字を区別せずに照合し、未知の値はinfoとする。
        severityを持たない診断はルールプレフィックス表で判定し、該当しなければwarningとする。
        """
        if raw is None:
            for prefix, severity in self._config.rule_severity_prefixes.items():
                if rule and rule.startswith(prefix):
                    return _SEVERITY_ALIASES.get(severity.lower(), "info")
            return "warning"
        return _SEVERITY_ALIASES.get(str(raw).strip().lower(), "info")

    @staticmethod
    def _relative_path(file_path: str, root: Path) -> str:
        path = Path(file_path)
        if not path.is_absolute():
            return path.as_posix()
        try:
            return path.resolve().relative_to(root).as_posix()
        except ValueError:
            return file_path

    async def _run_subprocess(self, args: list[str], cwd: str | None = None) -> tuple[int, str, str]:
        """サブプロセスを非同期で実行し、結果を返す。

        Args:
            args: 実行するコマンドと引数のリスト。
            cwd: 作業ディレクトリ。

        Returns:
            (exit_code, stdout, stderr) のタプル。
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            # 起動時の探索後に実行ファイルが消えた場合
            raise ToolUnavailableError(self._analyzer.command) from e
        stdout_bytes, stderr_bytes = await proc.communicate()
        return (
            proc.returncode or 0,
            stdout_bytes.decode("utf-8", errors="replace"),
            stderr_bytes.decode("utf-8", errors="replace"),
        )


def _first_str(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _location(data: dict[str, Any]) -> tuple[int | None, int | None]:
    """行・列を取り出す。フラットなline/columnとruffのlocation.row/columnの両方に対応する。"""
    location = data.get("location")
    if isinstance(location, dict):
        line = _as_int(location.get("row", location.get("line")))
        column = _as_int(location.get("column"))
        return line, column
    return _as_int(data.get("line")), _as_int(data.get("column"))


def _suggestion(data: dict[str, Any]) -> str | None:
    for key in ("suggestion", "correction"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    fix = data.get("fix")
    if isinstance(fix, dict) and isinstance(fix.get("message"), str):
        return fix["message"]
    return None


def _summarize(issues: list[ValidationIssue], malformed: int) -> str:
    if not issues:
        message = "No issues found"
    else:
        errors = sum(1 for i in issues if i.severity == "error")
        warnings = sum(1 for i in issues if i.severity == "warning")
        infos = len(issues) - errors - warnings
        counts = f"{_plural(errors, 'error')}, {_plural(warnings, 'warning')}, {infos} info"
        message = f"Found {_plural(len(issues), 'issue')} ({counts})"
    if malformed:
        message += f" (skipped {_plural(malformed, 'malformed line')})"
    return message


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
