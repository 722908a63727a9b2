#!/usr/bin/env python3
"""Main CLI entry point for Page Press using Typer.

Commands:
    serve    Run the HTTP API with uvicorn
    render   Capture one URL or local HTML file to a file
    version  Show version information
"""

import asyncio
import logging
from enum import IntEnum
from pathlib import Path
from typing import Annotated, Optional

import typer

from ..api.schemas import RenderRequest
from ..api.services import RenderDefaults, RenderService
from ..render.capture.config import get_config
from ..render.capture.engine import CaptureEngine
from ..render.errors import NavigationError, RenderError, TargetValidationError
from ..render.models import CaptureFormat, CaptureResult, MediaType, ReadyStrategy
from ..render.utils import TargetResolver, UrlAllowlist, parse_origin

VERSION = "0.1.0"

# Create the main Typer app
app = typer.Typer(
    name="pagepress",
    help="Page Press - render web pages to PDF, screenshots and HTML snapshots",
    add_completion=False,
)


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    READY_WITH_WARNINGS = 1
    NAVIGATION_ERROR = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4


@app.callback()
def main():
    """
    Page Press - render web pages to PDF, screenshots and HTML snapshots.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"Page Press v{VERSION}")


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 3001,
    log_level: Annotated[str, typer.Option("--log-level", help="uvicorn log level")] = "info",
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes (development)")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "app.api.main:app",
        host=host,
        port=port,
        log_level=log_level,
        reload=reload,
        access_log=True,
    )


def _default_output(capture_format: CaptureFormat) -> Path:
    suffix = {CaptureFormat.PDF: ".pdf", CaptureFormat.SCREENSHOT: ".png", CaptureFormat.HTML: ".html"}
    return Path("output" + suffix[capture_format])


def build_cli_request(
    target: str,
    base_url: Optional[str],
    selector: Optional[str],
    strategy: Optional[ReadyStrategy],
    delay: Optional[int],
    timeout_ms: Optional[int],
    media: MediaType,
    file_name: Optional[str],
) -> RenderRequest:
    """Build the request body for a URL or a local HTML file."""
    if parse_origin(target) is not None:
        return RenderRequest(
            url=target, wait_for_selector=selector, ready_strategy=strategy,
            delay=delay, timeout_ms=timeout_ms, media=media, file_name=file_name,
        )

    path = Path(target)
    if not path.is_file():
        raise typer.BadParameter(f"Not an http(s) URL or an existing file: {target}")

    return RenderRequest(
        html=path.read_text(encoding="utf-8"), base_url=base_url, wait_for_selector=selector,
        ready_strategy=strategy, delay=delay, timeout_ms=timeout_ms, media=media,
        file_name=file_name or path.with_suffix(".pdf").name,
    )


async def _run_capture(service: RenderService, body: RenderRequest, capture_format: CaptureFormat) -> CaptureResult:
    try:
        return await service.render(service.build_request(body, capture_format))
    finally:
        await service.engine.stop()


@app.command()
def render(
    target: Annotated[str, typer.Argument(help="http(s) URL or path to a local HTML file")],
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output file (default output.pdf/.png/.html)")
    ] = None,
    capture_format: Annotated[
        CaptureFormat,
        typer.Option("--format", "-f", help="Output format")
    ] = CaptureFormat.PDF,
    selector: Annotated[
        Optional[str],
        typer.Option("--selector", "-s", help="Element that must render before capture")
    ] = None,
    strategy: Annotated[
        Optional[ReadyStrategy],
        typer.Option("--strategy", help="Readiness strategy")
    ] = None,
    delay: Annotated[
        Optional[int],
        typer.Option("--delay", help="Settle delay in milliseconds")
    ] = None,
    timeout_ms: Annotated[
        Optional[int],
        typer.Option("--timeout-ms", help="Navigation timeout in milliseconds")
    ] = None,
    media: Annotated[
        MediaType,
        typer.Option("--media", help="CSS media type to emulate")
    ] = MediaType.SCREEN,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Base URL for relative assets of a local HTML file")
    ] = None,
    headful: Annotated[
        bool,
        typer.Option("--headful", help="Run browser with GUI (for debugging)")
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logging")
    ] = False,
):
    """Capture one page to a file.

    A URL target is allowed for this run regardless of the configured
    allowlist; the allowlist only guards the HTTP API.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        config = get_config().config
        body = build_cli_request(target, base_url, selector, strategy, delay, timeout_ms, media, None)
    except typer.BadParameter as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    engine_config = config.get_engine_config()
    engine_config.warm_up = False
    engine_config.browser_config.headless = not headful

    own_origin = [target] if body.url else []
    resolver = TargetResolver(UrlAllowlist(own_origin))
    service = RenderService(CaptureEngine(engine_config), resolver, RenderDefaults.from_config(config))

    try:
        result = asyncio.run(_run_capture(service, body, capture_format))
    except TargetValidationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    except NavigationError as e:
        typer.echo(f"❌ {e.message} ({e.details})", err=True)
        raise typer.Exit(code=ExitCode.NAVIGATION_ERROR.value)
    except RenderError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)
    except KeyboardInterrupt:
        typer.echo("❌ Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)

    output = out or _default_output(capture_format)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.content)

    typer.echo(f"✅ Wrote {result.size} bytes to {output}")

    warnings = result.readiness.warnings if result.readiness else []
    for warning in warnings:
        typer.echo(f"⚠️  {warning.state.value}: {warning.reason}", err=True)

    if warnings:
        raise typer.Exit(code=ExitCode.READY_WITH_WARNINGS.value)


if __name__ == "__main__":
    app()
