"""サービスの組み立てと、stdio・HTTPの各サーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from plumb.config import AnalyzerInfo, ServerConfig, probe_analyzer
from plumb.protocol.dispatcher import Dispatcher
from plumb.services.analyzer import AnalyzerService
from plumb.services.assessment import AssessmentService
from plumb.services.context import ProjectContextBuilder
from plumb.services.error_context import ErrorContextResolver
from plumb.services.knowledge import KnowledgeBase
from plumb.services.suggestions import SuggestionEngine
from plumb.tools.assist import register_assist_tools
from plumb.tools.context import register_context_tools
from plumb.tools.help import register_help_tools
from plumb.tools.registry import ToolRegistry
from plumb.tools.validation import register_validation_tools


def create_registry(config: ServerConfig, analyzer: AnalyzerInfo) -> ToolRegistry:
    """サービスを組み立て、全ツールを登録したレジストリを返す。"""
    # 知識テーブル・解析層
    knowledge = KnowledgeBase(config_dir=config.config_dir)
    builder = ProjectContextBuilder(config)

    # サービス層
    analyzer_service = AnalyzerService(config, analyzer)
    resolver = ErrorContextResolver(config, knowledge, builder)
    engine = SuggestionEngine(config, knowledge, builder)
    assessment_service = AssessmentService(builder)

    registry = ToolRegistry()
    register_validation_tools(registry, analyzer_service)
    register_context_tools(registry, builder, resolver)
    register_assist_tools(registry, engine, assessment_service)
    register_help_tools(registry, config)
    return registry


def create_dispatcher(config: ServerConfig | None = None, analyzer: AnalyzerInfo | None = None) -> Dispatcher:
    """stdio用のディスパッチャーを作成する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        analyzer: アナライザー情報。Noneの場合はここで一度だけ探索する。
    """
    if config is None:
        config = ServerConfig()
    if analyzer is None:
        analyzer = probe_analyzer(config)
    return Dispatcher(create_registry(config, analyzer), config, analyzer)


def create_server(config: ServerConfig | None = None, analyzer: AnalyzerInfo | None = None) -> FastMCP:
    """HTTP公開用のFastMCPサーバーを作成し、stdioと同じツールを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        analyzer: アナライザー情報。Noneの場合はここで一度だけ探索する。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()
    if analyzer is None:
        analyzer = probe_analyzer(config)

    mcp = FastMCP(config.server_name)
    create_registry(config, analyzer).mount(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "version": config.server_version,
                "analyzer": {"command": analyzer.command, "available": analyzer.available},
            }
        )

    return mcp
