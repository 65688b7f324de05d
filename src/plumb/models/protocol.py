"""JSON-RPCプロトコル関連のデータモデル。"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

RequestId = str | int | float | None

JSONRPC_VERSION = "2.0"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"


class ToolExample(BaseModel):
    """ツールの利用例。"""

    description: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """tools/listで返す静的なツールカタログ項目。"""

    name: str
    description: str
    parameters: dict[str, Any]
    examples: list[ToolExample] = Field(default_factory=list)


class _RequestBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId = None


class InitializeParams(BaseModel):
    protocolVersion: str = DEFAULT_PROTOCOL_VERSION
    capabilities: dict[str, Any] = Field(default_factory=dict)
    clientInfo: dict[str, Any] = Field(default_factory=dict)


class InitializeRequest(_RequestBase):
    method: Literal["initialize"]
    params: InitializeParams = Field(default_factory=InitializeParams)


class ListToolsRequest(_RequestBase):
    method: Literal["tools/list"]
    params: dict[str, Any] = Field(default_factory=dict)


class CallToolParams(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class CallToolRequest(_RequestBase):
    method: Literal["tools/call"]
    params: CallToolParams


ToolRequest = Annotated[
    InitializeRequest | ListToolsRequest | CallToolRequest,
    Field(discriminator="method"),
]

request_adapter: TypeAdapter[InitializeRequest | ListToolsRequest | CallToolRequest] = TypeAdapter(ToolRequest)

SUPPORTED_METHODS = ["initialize", "tools/list", "tools/call"]


class RpcError(BaseModel):
    """JSON-RPCエラーオブジェクト。dataには復旧用のヒントを含める。"""

    code: int
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class RpcSuccess(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    result: dict[str, Any]


class RpcFailure(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    error: RpcError


ToolResponse = RpcSuccess | RpcFailure
