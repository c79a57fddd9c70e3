"""CLI for wallet token aggregator."""

import json
import logging
from decimal import Decimal
from enum import StrEnum

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from wallet_token_aggregator.core.errors import TokenAggregatorError
from wallet_token_aggregator.core.models import AggregatedToken
from wallet_token_aggregator.data import Settings, load_settings
from wallet_token_aggregator.service import TokenService, build_service

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="wallet-token-aggregator",
    help="Aggregate a wallet's ERC-20 holdings into a priced, deduplicated list",
    add_completion=False,
)

# Results go to stdout; logs, progress and errors to stderr
console = Console()
err_console = Console(stderr=True)


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def _load_settings() -> Settings:
    load_dotenv()
    return load_settings()


def _build_service(settings: Settings) -> TokenService:
    """
    Build the token service or exit with a configuration hint.

    Raises
    ------
    typer.Exit
        If Alchemy is not configured

    """
    try:
        return build_service(settings)
    except ValueError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        err_console.print("[dim]  Add to .env: ALCHEMY_API_KEY='your_api_key'[/dim]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from wallet_token_aggregator.api import create_app

    _configure_logging(debug)
    settings = _load_settings()
    service = _build_service(settings)

    api = create_app(service, cors_allow_origins=settings.server.cors_allow_origins)
    uvicorn.run(
        api,
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_level="debug" if debug else "info",
    )


@app.command()
def tokens(
    identity: str = typer.Argument(..., help="Wallet address or ENS name"),
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        "-f",
        help="Output format",
    ),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Refresh top-token prices before pricing"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Get the priced token list for a wallet.

    Examples:

        # Table output
        wallet-token-aggregator tokens vitalik.eth

        # Refresh prices first and print JSON
        wallet-token-aggregator tokens 0xABC... --refresh --format json
    """
    _configure_logging(debug)
    settings = _load_settings()
    service = _build_service(settings)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
            transient=True,
        ) as progress:
            task = progress.add_task("Loading price cache...", total=None)
            service.price_cache.load()
            if refresh and service.refresher is not None:
                progress.update(task, description="Refreshing top-token prices...")
                service.refresher.refresh()
            progress.update(task, description=f"Fetching tokens for {identity}...")
            result = service.aggregator.get_tokens(identity)

        if format == OutputFormat.JSON:
            _output_json(result)
        else:
            _output_table(identity, result)

    except TokenAggregatorError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        if debug:
            raise
        raise typer.Exit(1)
    finally:
        service.close()


@app.command()
def refresh_prices(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """Refresh top-token prices and rewrite the price cache file."""
    _configure_logging(debug)
    settings = _load_settings()
    service = _build_service(settings)

    try:
        service.price_cache.load()
        if service.refresher is None or not service.refresher.refresh():
            err_console.print("[bold red]Price refresh failed[/bold red]")
            raise typer.Exit(1)
        console.print(
            f"[green]✓[/green] {len(service.top_tokens)} top-token prices, "
            f"{len(service.price_cache)} cached prices in {settings.price_cache.file}"
        )
    finally:
        service.close()


def _format_amount(amount: Decimal) -> str:
    return f"{amount:,.4f}"


def _format_usd(value: Decimal) -> str:
    return f"${value:,.2f}"


def _output_table(identity: str, result: list[AggregatedToken]) -> None:
    """Output tokens as rich table."""
    if not result:
        console.print("\n[yellow]No tokens found[/yellow]")
        return

    table = Table(
        title=f"Tokens for {identity}",
        show_header=True,
        header_style="bold magenta",
    )

    table.add_column("Token", style="green")
    table.add_column("Contract", style="cyan")
    table.add_column("Balance", style="white", justify="right")
    table.add_column("Price", style="yellow", justify="right")
    table.add_column("USD Value", style="bold green", justify="right")

    total = Decimal("0")
    for token in result:
        total += token.value
        table.add_row(
            token.symbol,
            f"{token.contract_address[:10]}...{token.contract_address[-8:]}",
            _format_amount(token.amount),
            _format_usd(Decimal(str(token.price))) if token.price else "-",
            _format_usd(token.value),
        )

    console.print("\n")
    console.print(table)
    console.print(f"\n[bold]Total Value:[/bold] [bold green]{_format_usd(total)}[/bold green]\n")


def _output_json(result: list[AggregatedToken]) -> None:
    """Output tokens as JSON."""
    data = [token.model_dump(mode="json", by_alias=True) for token in result]
    console.print_json(json.dumps(data))


if __name__ == "__main__":
    app()
