"""Plumbのカスタム例外クラス。"""

from typing import Any


class PlumbError(Exception):
    """Plumbの基底例外クラス。

    全ての失敗レスポンスに含める短い対処ヒントを保持する。
    """

    hint = "Check the request arguments and try again."

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class ConfigurationError(PlumbError):
    """プロジェクトパスや設定が不正な場合の例外。"""

    hint = "Pass project_path pointing at an existing project directory."


class NotAProjectError(ConfigurationError):
    """プロジェクトルートにマニフェストが存在しない場合の例外。"""

    def __init__(self, project_path: str, manifest_names: list[str]) -> None:
        expected = ", ".join(manifest_names)
        super().__init__(
            f"No project manifest found in {project_path}: expected one of {expected}",
            hint=f"Run the tool from a project root that contains {manifest_names[0]}.",
        )
        self.project_path = project_path
        self.manifest_names = manifest_names


class ToolUnavailableError(PlumbError):
    """アナライザー実行ファイルがPATH上に見つからない場合の例外。"""

    def __init__(self, command: str) -> None:
        super().__init__(
            f"Analyzer executable not found on PATH: {command}",
            hint=f"Install {command} (for example 'pip install {command}') or set PLUMB_ANALYZER_COMMAND.",
        )
        self.command = command


class ProcessFailureError(PlumbError):
    """アナライザーが非ゼロで終了し、診断を1件も出力しなかった場合の例外。"""

    def __init__(self, command: str, exit_code: int, stderr: str, *, files_analyzed: int = 0) -> None:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no diagnostics produced"
        super().__init__(
            f"Analyzer process failed with exit code {exit_code}: {detail}",
            hint=f"Run '{command}' manually in the project directory to inspect its output.",
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        # アナライザーとは独立に走査したソースファイル数
        self.files_analyzed = files_analyzed


class DiagnosticParseError(PlumbError):
    """アナライザー出力の1行を診断として解釈できない場合の例外。

    実行全体は中断せず、呼び出し側でスキップ・計数する。
    """

    def __init__(self, line_number: int, reason: str) -> None:
        super().__init__(f"Malformed analyzer output on line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class ProtocolError(PlumbError):
    """JSON-RPCフレームの処理エラー。エラーコードと復旧用データを持つ。"""

    code = -32600

    def __init__(self, message: str, data: dict[str, Any] | None = None, *, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.data = data or {}


class InvalidFrameError(ProtocolError):
    """JSONとして解釈できない、またはJSON-RPCの形をしていないフレーム。"""

    def __init__(self, message: str, *, parse_failed: bool = False) -> None:
        super().__init__(
            message,
            hint="Send exactly one JSON-RPC 2.0 object per line.",
        )
        self.code = -32700 if parse_failed else -32600


class MethodNotFoundError(ProtocolError):
    """未知のメソッドが要求された場合の例外。"""

    code = -32601

    def __init__(self, method: str, available_methods: list[str]) -> None:
        super().__init__(
            f"Method not found: {method}",
            {"available_methods": available_methods},
            hint="Use tools/list to see available tools",
        )
        self.method = method


class UnknownToolError(ProtocolError):
    """未登録のツール名が指定された場合の例外。"""

    code = -32601

    def __init__(self, tool_name: str, available_tools: list[str]) -> None:
        super().__init__(
            f"Unknown tool: {tool_name}",
            {"available_tools": available_tools},
            hint="Use tools/list to see all available tools with descriptions",
        )
        self.tool_name = tool_name


class InvalidParamsError(ProtocolError):
    """パラメータがスキーマに適合しない場合の例外。"""

    code = -32602

    def __init__(self, message: str, errors: list[dict[str, Any]], **data: Any) -> None:
        super().__init__(
            message,
            {"errors": errors, **data},
            hint="Check the parameters against the schema returned by tools/list",
        )


class InternalError(ProtocolError):
    """ハンドラ内部の想定外の例外をディスパッチ境界で包む例外。"""

    code = -32603

    def __init__(self, message: str, **data: Any) -> None:
        super().__init__(message, data, hint="Check your parameters and try again")
