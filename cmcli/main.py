"""Main entry point for the cmcli application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

from cmcli.core.command_handler import CommandHandler, parse_param_pairs
from cmcli.infrastructure.cli.display import ConsoleDisplay
from cmcli.infrastructure.config.settings import get_config, load_configuration
from cmcli.infrastructure.http.httpx_transport import HttpxTransport
from cmcli.infrastructure.monitoring.logger_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(log_level: Optional[str] = None) -> Dict[str, Any]:
    """Creates and wires up the dependencies for one CLI invocation.

    This acts as the Composition Root.
    """
    load_configuration()
    level = level_from_name(log_level or get_config('logging.level'))
    setup_logging(
        log_level=level,
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['command_handler'] = CommandHandler(
        ui=dependencies['ui'],
        transport_factory=HttpxTransport,
    )
    logger.debug("Dependencies initialized.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="cmcli",
    help="cmcli: CoinMarketCap API client with client-side rate limiting and retries.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, bool]) -> bool:
    """Runs an async command handler from a sync Typer command."""
    return asyncio.run(coro)


def _handler(ctx: typer.Context) -> CommandHandler:
    return ctx.obj['command_handler']


def _finish(ok: bool) -> None:
    if not ok:
        raise typer.Exit(code=1)


# --- Shared options ---

ParamOption = Annotated[
    Optional[List[str]],
    typer.Option("--param", "-p", help="Query parameter as key=value (repeatable).")
]
MethodOption = Annotated[str, typer.Option("--method", "-m", help="HTTP method.")]
SandboxOption = Annotated[
    Optional[bool],
    typer.Option("--sandbox/--production", help="Use the sandbox host. Defaults to the configured CMC_SANDBOX.")
]
MaxRetriesOption = Annotated[
    Optional[int],
    typer.Option("--max-retries", min=0, max=10, help="Retries for transient failures.")
]
BackoffOption = Annotated[
    Optional[int],
    typer.Option("--initial-backoff-ms", min=100, max=10000, help="First retry delay; doubles per retry.")
]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", min=0.1, help="Per-request timeout in seconds (at least 0.1).")
]


@app.command()
def request(
    ctx: typer.Context,
    endpoint: Annotated[str, typer.Argument(help="Endpoint path, e.g. 'cryptocurrency/listings/latest'.")],
    param: ParamOption = None,
    method: MethodOption = "GET",
    sandbox: SandboxOption = None,
    max_retries: MaxRetriesOption = None,
    initial_backoff_ms: BackoffOption = None,
    timeout: TimeoutOption = None,
    show_usage: Annotated[bool, typer.Option("--show-usage", help="Print rate-limit usage afterwards.")] = False,
):
    """Call one endpoint and print its data as JSON."""
    try:
        params = parse_param_pairs(param)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--param")
    _finish(run_async(_handler(ctx).handle_request(
        endpoint, params=params, method=method, sandbox=sandbox,
        max_retries=max_retries, initial_backoff_ms=initial_backoff_ms,
        timeout=timeout, show_usage=show_usage,
    )))


@app.command()
def batch(
    ctx: typer.Context,
    endpoint: Annotated[str, typer.Argument(help="Endpoint path.")],
    each: Annotated[str, typer.Option("--each", "-e", help="key=v1,v2,... ; one concurrent call per value.")],
    param: ParamOption = None,
    method: MethodOption = "GET",
    sandbox: SandboxOption = None,
    max_retries: MaxRetriesOption = None,
    initial_backoff_ms: BackoffOption = None,
    timeout: TimeoutOption = None,
):
    """Fan out one call per value, sharing a single rate limiter."""
    key, sep, raw_values = each.partition("=")
    values = [v.strip() for v in raw_values.split(",") if v.strip()]
    if not sep or not key.strip() or not values:
        raise typer.BadParameter("expected key=v1,v2,...", param_hint="--each")
    try:
        params = parse_param_pairs(param)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--param")
    _finish(run_async(_handler(ctx).handle_batch(
        endpoint, key.strip(), values, params=params, method=method, sandbox=sandbox,
        max_retries=max_retries, initial_backoff_ms=initial_backoff_ms, timeout=timeout,
    )))


@app.command()
def limits(ctx: typer.Context, sandbox: SandboxOption = None):
    """Show the effective quotas and retry policy."""
    _finish(_handler(ctx).handle_limits(sandbox=sandbox))


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR. Defaults to logging.level or WARNING.")
    ] = None,
):
    """Wire up dependencies before any command runs."""
    ctx.obj = create_dependencies(log_level)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
