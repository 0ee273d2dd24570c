"""
Main CLI application for the Ethereum wallet summarizer.
"""

from typing import Optional
import os
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .agent import render_markdown
from .analyzer import WalletAnalyzer
from .config import Config
from .errors import ConfigurationError, WalletSummarizerError
from .models import AnalysisResult, Direction
from .utils import format_decimal, format_number, token_summary_record

logger = logging.getLogger(__name__)


app = typer.Typer(
    name="eth-summarizer",
    help="Summarize recent ERC-20 inflows and outflows of an Ethereum wallet."
)

console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def load_config() -> Config:
    """Load application configuration."""
    try:
        return Config.from_env()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print(
            "\n[yellow]Please create a .env file with your API keys:[/yellow]")
        console.print("ETHERSCAN_API_KEY=your_key_here")
        console.print("OPENAI_API_KEY=your_key_here")
        console.print("\nOr run: eth-summarizer setup")
        raise typer.Exit(1)


def display_result(result: AnalysisResult) -> None:
    """Display transfers, token totals and the narrative."""
    console.print(Panel(
        f"Wallet: [yellow]{result.wallet_address}[/yellow]\n"
        f"Profile: [blue]{result.link}[/blue]",
        title="Wallet",
        expand=False
    ))

    if result.transfers:
        table = Table(title="Recent Token Transfers")
        table.add_column("Date", style="white", no_wrap=True)
        table.add_column("Token", style="cyan")
        table.add_column("Direction", no_wrap=True)
        table.add_column("Amount", style="green", justify="right")
        table.add_column("Transaction Hash", style="yellow", no_wrap=True)

        for transfer in result.transfers:
            event = transfer.event
            color = "green" if transfer.direction is Direction.INFLOW else "red"
            table.add_row(
                event.timestamp.strftime("%Y-%m-%d %H:%M"),
                event.token_name,
                f"[{color}]{transfer.direction.value}[/{color}]",
                format_number(event.display_amount),
                f"{event.tx_hash[:10]}...",
            )
        console.print(table)

        totals = Table(title="Token Totals")
        totals.add_column("Token", style="cyan")
        totals.add_column("Transfers", justify="right")
        totals.add_column("Inflow", style="green", justify="right")
        totals.add_column("Outflow", style="red", justify="right")
        totals.add_column("Last Direction")
        for token in result.tokens:
            totals.add_row(
                token.token_name,
                str(token.transfer_count),
                format_decimal(token.total_inflow),
                format_decimal(token.total_outflow),
                token.last_direction.value if token.last_direction else "-",
            )
        console.print(totals)

    console.print(Panel(Markdown(result.narrative), title="Summary"))


def result_to_dict(result: AnalysisResult) -> dict:
    return {
        "walletAddress": result.wallet_address,
        "summary": result.narrative,
        "link": result.link,
        "timestamp": result.generated_at.isoformat(),
        "tokens": [token_summary_record(token) for token in result.tokens],
    }


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Logging level (defaults to LOG_LEVEL or WARNING)")
):
    """Configure logging before running a command."""
    configure_logging(log_level or os.getenv("LOG_LEVEL", "WARNING"))


@app.command()
def analyze(
    address: str = typer.Argument(..., help="Wallet address (0x followed by 40 hex characters)"),
    window: Optional[int] = typer.Option(
        None, "--window", "-w", min=1, help="Number of most recent transfers to summarize"),
    all_transfers: bool = typer.Option(
        False, "--all", help="Summarize every fetched transfer"),
    filter_balances: Optional[bool] = typer.Option(
        None, "--filter-balances/--no-filter-balances",
        help="Drop tokens the wallet no longer holds"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the narrative to a markdown file"),
):
    """Summarize recent token transfers of a wallet."""
    config = load_config()
    if filter_balances is not None:
        config.balance_filter = filter_balances

    if all_transfers:
        config.summary_window = None
    elif window is not None:
        config.summary_window = window

    analyzer = WalletAnalyzer.from_config(config)

    try:
        with console.status(f"[cyan]Analyzing {address}...[/cyan]"):
            result = analyzer.analyze(address)
    except WalletSummarizerError as e:
        logger.debug(f"Analysis failed: {e!r}")
        console.print(f"[red]{e.user_message}[/red]")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(result_to_dict(result)))
    else:
        display_result(result)

    if output_file:
        output_file.write_text(render_markdown(result), encoding="utf-8")
        console.print(f"[green]Summary written to {output_file}[/green]")


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
):
    """Run the agent HTTP server."""
    import uvicorn

    from .agent import WalletAgent
    from .server import create_app
    from .task_platform import PlatformClient

    config = load_config()
    try:
        platform = PlatformClient(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    agent = WalletAgent(
        WalletAnalyzer.from_config(config), platform, upload_summary=config.upload_summary)
    port = port or config.port
    console.print(f"[green]Agent running on port {port}[/green]")
    uvicorn.run(create_app(agent), host=host, port=port, log_level=config.log_level.lower())


@app.command()
def setup():
    """Setup the application by creating a .env file template."""
    env_content = """# ETH Wallet Summarizer Configuration

# Required: Etherscan API key (get from https://etherscan.io/apis)
# Several keys can be rotated with ETHERSCAN_API_KEYS=key1,key2
ETHERSCAN_API_KEY=your_etherscan_api_key_here

# Required: OpenAI API key
OPENAI_API_KEY=your_openai_api_key_here
# OPENAI_MODEL=gpt-4
# OPENAI_BASE_URL=

# Required for `serve`: agent platform key
# OPENSERV_API_KEY=your_platform_api_key_here

# Analysis Settings
FETCH_LIMIT=50
SUMMARY_WINDOW=20
REQUEST_TIMEOUT=10
KEY_STRATEGY=round_robin

# Balance filter (drops tokens the wallet no longer holds)
BALANCE_FILTER=false
BALANCE_SOURCE=etherscan
RATE_LIMIT_PER_SECOND=0.5
RATE_LIMIT_BURST=1

# Agent Settings
PORT=7378
UPLOAD_SUMMARY=false
LOG_LEVEL=WARNING
"""

    env_path = Path(".env")
    if env_path.exists():
        console.print("[yellow].env file already exists![/yellow]")
        if not typer.confirm("Overwrite existing .env file?"):
            return

    with open(env_path, 'w') as f:
        f.write(env_content)

    console.print(f"[green]Created .env file at {env_path.absolute()}[/green]")
    console.print(
        "\n[yellow]Please edit the .env file and add your API keys:[/yellow]")
    console.print("1. Get an Etherscan API key from https://etherscan.io/apis")
    console.print("2. Add your OpenAI API key")
    console.print("3. Run: eth-summarizer analyze <wallet_address>")


if __name__ == "__main__":
    app()
