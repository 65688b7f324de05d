"""改行区切りJSON-RPCのディスパッチャー。"""

import asyncio
import io
import json
import logging
import re
import sys
from typing import Any, TextIO

from pydantic import ValidationError

from plumb.config import AnalyzerInfo, ServerConfig
from plumb.models.errors import InternalError, InvalidFrameError, InvalidParamsError, MethodNotFoundError, ProtocolError
from plumb.models.protocol import (
    SUPPORTED_METHODS,
    CallToolRequest,
    InitializeRequest,
    ListToolsRequest,
    RequestId,
    RpcError,
    RpcFailure,
    RpcSuccess,
    request_adapter,
)
from plumb.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# JSONとして解釈できないフレームからidを取り出すための正規表現
_ID_RE = re.compile(r'"id"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?|null)')

_NOTIFICATION_PREFIX = "notifications/"


def recover_id(raw: str) -> RequestId:
    """壊れたフレームの生テキストからリクエストidを可能な範囲で取り出す。"""
    match = _ID_RE.search(raw)
    if match is None:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return value if _is_valid_id(value) else None


def _is_valid_id(value: Any) -> bool:
    return value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool))


class Dispatcher:
    """1フレームずつ読み込み、処理し、1フレームを書き戻すステートレスなループ。

    リクエストは1件ずつ最後まで処理してから次を読む。応答のidは
    復元できる限り常にリクエストのidと一致する。入力ストリームが閉じるまで
    ループは終了しない。
    """

    def __init__(self, registry: ToolRegistry, config: ServerConfig, analyzer: AnalyzerInfo) -> None:
        self._registry = registry
        self._config = config
        self._analyzer = analyzer

    async def serve(self, reader: TextIO | None = None, writer: TextIO | None = None) -> None:
        """入力ストリームが閉じるまでフレームを処理する。

        Args:
            reader: 入力ストリーム。Noneの場合は標準入力。
            writer: 出力ストリーム。Noneの場合は標準出力。プロトコルフレーム専用。
        """
        reader = reader or sys.stdin
        writer = writer or sys.stdout
        if isinstance(reader, io.TextIOWrapper):
            # UTF-8として不正なバイト列も1フレームとして読み、解析エラーとして応答する
            reader.reconfigure(errors="replace")
        logger.info("%s %s listening on stdio", self._config.server_name, self._config.server_version)
        while True:
            line = await asyncio.to_thread(reader.readline)
            if line == "":
                break
            response = await self.handle_line(line)
            if response is None:
                continue
            writer.write(json.dumps(response, ensure_ascii=False) + "\n")
            writer.flush()
        logger.info("Input stream closed, shutting down")

    async def handle_line(self, raw: str) -> dict[str, Any] | None:
        """1行のフレームを処理して応答を返す。応答不要の場合はNone。"""
        if not raw.strip():
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            error = InvalidFrameError(f"Parse error: {e.msg}", parse_failed=True)
            return self._failure(recover_id(raw), error)
        except (ValueError, RecursionError) as e:
            # 桁数上限を超える整数や深すぎる入れ子
            error = InvalidFrameError(f"Parse error: {type(e).__name__}", parse_failed=True)
            return self._failure(recover_id(raw), error)
        return await self.handle_message(payload)

    async def handle_message(self, payload: Any) -> dict[str, Any] | None:
        """デコード済みのフレームを検証し、メソッドに振り分ける。"""
        if not isinstance(payload, dict):
            return self._failure(None, InvalidFrameError("Invalid request: frame must be a JSON object"))

        request_id = payload.get("id")
        if not _is_valid_id(request_id):
            return self._failure(None, InvalidFrameError("Invalid request: id must be a string, number or null"))

        method = payload.get("method")
        if isinstance(method, str) and method.startswith(_NOTIFICATION_PREFIX) and "id" not in payload:
            logger.debug("Notification received: %s", method)
            return None

        try:
            result = await self._dispatch(payload, method)
        except ProtocolError as e:
            return self._failure(request_id, e)
        except Exception as e:
            logger.exception("Unhandled error while processing %s", method)
            return self._failure(request_id, InternalError(f"Internal error: {e}", method=method))
        return RpcSuccess(id=request_id, result=result).model_dump(mode="json")

    async def _dispatch(self, payload: dict[str, Any], method: Any) -> dict[str, Any]:
        if not isinstance(method, str):
            raise InvalidFrameError("Invalid request: method must be a string")
        if method not in SUPPORTED_METHODS:
            raise MethodNotFoundError(method, SUPPORTED_METHODS)

        try:
            request = request_adapter.validate_python(payload)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            if any(len(err["loc"]) > 1 and err["loc"][1] == "params" for err in errors):
                raise InvalidParamsError(f"Invalid params for {method}", errors) from e
            raise InvalidFrameError(f"Invalid request: {e.error_count()} validation errors") from e

        if isinstance(request, InitializeRequest):
            return self._initialize(request)
        if isinstance(request, ListToolsRequest):
            return {"tools": [d.model_dump(mode="json") for d in self._registry.definitions()]}
        if isinstance(request, CallToolRequest):
            return await self._registry.call(request.params.name, request.params.arguments)
        raise MethodNotFoundError(method, SUPPORTED_METHODS)

    def _initialize(self, request: InitializeRequest) -> dict[str, Any]:
        logger.info("Client connected: %s", request.params.clientInfo.get("name", "unknown"))
        return {
            "protocolVersion": request.params.protocolVersion,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self._config.server_name,
                "version": self._config.server_version,
                "description": "Static-analysis validation and project context for Python projects",
            },
            "analyzer": {
                "command": self._analyzer.command,
                "version": self._analyzer.version,
            },
        }

    @staticmethod
    def _failure(request_id: RequestId, error: ProtocolError) -> dict[str, Any]:
        data = {**error.data, "hint": error.hint}
        response = RpcFailure(id=request_id, error=RpcError(code=error.code, message=str(error), data=data))
        return response.model_dump(mode="json")
