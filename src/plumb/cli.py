"""plumbのコマンドラインインターフェース。"""

import asyncio
from dataclasses import dataclass

import click
from rich.console import Console
from rich.markup import escape

from plumb.config import ServerConfig, configure_logging, probe_analyzer
from plumb.models.validation import ValidationResult
from plumb.services.analyzer import AnalyzerService

_SEVERITY_STYLES = {"error": "red", "warning": "yellow", "info": "cyan"}


@dataclass
class CliContext:
    """サブコマンド間で共有するコンテキスト。"""

    config: ServerConfig
    verbose: bool = False


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """plumb: static-analysis validation and project context for Python projects."""
    config = ServerConfig()
    configure_logging("DEBUG" if verbose else config.log_level)
    ctx.obj = CliContext(config=config, verbose=verbose)


@main.command("validate")
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.option("--exclude", "-e", "excludes", multiple=True, help="Path fragment to exclude (repeatable)")
@click.option("--verbose", is_flag=True, help="Report skipped analyzer output lines")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def validate(ctx: click.Context, path: str | None, excludes: tuple[str, ...], verbose: bool, as_json: bool) -> None:
    """Validate the project at PATH (default: current directory).

    Exits 0 when no error-severity issue is found, 1 otherwise.
    """
    cli_ctx: CliContext = ctx.obj
    service = AnalyzerService(cli_ctx.config, probe_analyzer(cli_ctx.config))
    result = asyncio.run(service.validate(path, list(excludes), verbose or cli_ctx.verbose))

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    else:
        _print_result(result)
    ctx.exit(0 if result.success else 1)


def _print_result(result: ValidationResult) -> None:
    console = Console(highlight=False, soft_wrap=True)
    for issue in result.issues:
        location = issue.file_path
        if issue.line is not None:
            location += f":{issue.line}"
            if issue.column is not None:
                location += f":{issue.column}"
        rule = f" [{issue.rule}]" if issue.rule else ""
        style = _SEVERITY_STYLES[issue.severity]
        console.print(f"{escape(location)}: [{style}]{issue.severity}[/{style}]{escape(rule)} {escape(issue.message)}")

    if result.error_kind:
        console.print(f"[red]{result.error_kind}[/red]: {escape(result.message)}")
        if result.hint:
            console.print(f"hint: {escape(result.hint)}")
        return

    status = "[green]OK[/green]" if result.success else "[red]FAILED[/red]"
    console.print(f"{status} {escape(result.message)} ({result.files_analyzed} files, {result.duration_ms:.0f} ms)")


@main.command("serve")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default="stdio",
    show_default=True,
    help="stdio: newline-delimited JSON-RPC, http: MCP streamable HTTP",
)
@click.option("--host", default=None, help="HTTP bind address")
@click.option("--port", type=int, default=None, help="HTTP port")
@click.pass_context
def serve(ctx: click.Context, transport: str, host: str | None, port: int | None) -> None:
    """Run the tool server."""
    cli_ctx: CliContext = ctx.obj
    config = cli_ctx.config
    analyzer = probe_analyzer(config)

    if transport == "stdio":
        from plumb.server import create_dispatcher

        asyncio.run(create_dispatcher(config, analyzer).serve())
        return

    import uvicorn
    from starlette.middleware import Middleware

    from plumb.middleware import TokenAuthMiddleware
    from plumb.server import create_server

    mcp = create_server(config, analyzer)
    app = mcp.http_app(
        transport="streamable-http",
        middleware=[Middleware(TokenAuthMiddleware, url_token=config.url_token)],
    )
    uvicorn.run(app, host=host or config.host, port=port or config.port)
