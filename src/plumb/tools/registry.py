"""ツールハンドラの登録と呼び出しを行うレジストリ。"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, get_type_hints

from fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from plumb.models.errors import InvalidParamsError, PlumbError, UnknownToolError
from plumb.models.protocol import ToolDefinition, ToolExample

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[dict[str, Any]]]


def error_payload(error: PlumbError) -> dict[str, Any]:
    """ハンドラ内で捕捉したPlumbErrorを失敗レスポンスのペイロードに変換する。"""
    return {
        "success": False,
        "error": type(error).__name__,
        "message": str(error),
        "hint": error.hint,
    }


def _arguments_model(name: str, handler: ToolHandler) -> type[BaseModel]:
    """ハンドラのシグネチャから引数検証用のモデルを生成する。未知の引数は拒否する。"""
    hints = get_type_hints(handler, include_extras=True)
    fields: dict[str, Any] = {}
    for param in inspect.signature(handler).parameters.values():
        annotation = hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (annotation, default)
    model_name = "".join(part.capitalize() for part in name.split("_")) + "Arguments"
    return create_model(model_name, __config__=ConfigDict(extra="forbid"), **fields)


@dataclass
class RegisteredTool:
    """登録済みツール。"""

    name: str
    description: str
    handler: ToolHandler
    arguments_model: type[BaseModel]
    examples: list[ToolExample] = field(default_factory=list)

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.arguments_model.model_json_schema(),
            examples=self.examples,
        )

    async def call(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """引数を検証してハンドラを呼び出す。

        Raises:
            InvalidParamsError: 引数がスキーマに適合しない場合。
        """
        try:
            validated = self.arguments_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidParamsError(
                f"Invalid arguments for tool {self.name}",
                e.errors(include_url=False, include_context=False, include_input=False),
                tool=self.name,
            ) from e
        kwargs = {name: getattr(validated, name) for name in type(validated).model_fields}
        return await self.handler(**kwargs)


class ToolRegistry:
    """名前付きツールの静的カタログ。

    ``@registry.tool()`` で登録したハンドラは、stdioのディスパッチャーと
    FastMCPサーバーの両方から同じ実装で呼び出される。
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def tool(
        self,
        name: str | None = None,
        examples: list[dict[str, Any]] | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """非同期関数をツールとして登録するデコレータ。

        説明文は関数のdocstring、パラメータのスキーマはシグネチャから生成する。
        """

        def decorator(handler: ToolHandler) -> ToolHandler:
            tool_name = name or handler.__name__
            if tool_name in self._tools:
                raise ValueError(f"Tool already registered: {tool_name}")
            self._tools[tool_name] = RegisteredTool(
                name=tool_name,
                description=inspect.getdoc(handler) or "",
                handler=handler,
                arguments_model=_arguments_model(tool_name, handler),
                examples=[ToolExample.model_validate(e) for e in examples or []],
            )
            return handler

        return decorator

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    def get(self, name: str) -> RegisteredTool:
        """ツールを取得する。

        Raises:
            UnknownToolError: 未登録のツール名の場合。
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name, self.names())
        return tool

    async def call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        tool = self.get(name)
        logger.debug("Calling tool %s", name)
        return await tool.call(arguments)

    def mount(self, mcp: FastMCP) -> None:
        """登録済みのツールをFastMCPサーバーにも登録する。"""
        for tool in self._tools.values():
            mcp.tool(name=tool.name, description=tool.description)(tool.handler)
