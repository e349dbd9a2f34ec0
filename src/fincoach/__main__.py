"""FinCoach entry point.

Changes:
  - 2026-10-12: Added ``insights --seasonal`` for holiday plans.
  - 2026-10-10: Added ``serve`` subcommand (API-only server).
  - 2026-10-08: Interactive ``chat`` streams replies into a Rich console.
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from rich.console import Console
from rich.panel import Panel

from fincoach.config import get_settings
from fincoach.llm.frames import is_terminal
from fincoach.llm.streaming import StreamOutcome
from fincoach.logging_setup import setup_logging

logger = logging.getLogger(__name__)

console = Console()

_QUIT_WORDS = {"quit", "exit", ":q"}


def _version() -> str:
    try:
        return get_version("fincoach")
    except PackageNotFoundError:
        return "0.0.0+local"


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None


def _category_amount(value: str) -> tuple[str, Decimal]:
    name, sep, amount = value.rpartition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=AMOUNT, got {value!r}")
    return name.strip(), _decimal(amount)


async def run_chat(services) -> int:
    """Interactive chat loop. Ctrl-C while a reply streams stops that reply."""
    console.print(
        Panel(
            "[bold green]FinCoach[/bold green]\n\n"
            "Ask about budgeting, saving or a purchase you are planning.\n"
            "Ctrl-C stops a reply. Type [bold]quit[/bold] to leave.",
            title="Welcome",
        )
    )
    history = services.conversations.get_or_create("cli")

    def _on_delta(chunk: str) -> None:
        if is_terminal(chunk):
            console.print()
            return
        console.print(chunk, end="", markup=False, highlight=False)

    while True:
        try:
            text = (await asyncio.to_thread(console.input, "[bold blue]You:[/bold blue] ")).strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return 0
        if not text:
            continue
        if text.lower() in _QUIT_WORDS:
            return 0
        if text.lower() == "/reset":
            history.clear()
            console.print("[dim]Conversation cleared.[/dim]")
            continue

        console.print("[bold green]Coach:[/bold green] ", end="")
        stream = services.chat.send(history, text, on_delta=_on_delta)
        try:
            outcome = await stream.wait()
        except asyncio.CancelledError:
            # SIGINT cancels the main task; stop the reply and keep chatting
            asyncio.current_task().uncancel()
            stream.cancel()
            outcome = await stream.wait()
        if outcome is StreamOutcome.CANCELLED:
            console.print("[dim](stopped)[/dim]")


async def run_categorize(services, description: str, amount: Decimal) -> int:
    category = await services.categorizer.categorize(description, amount)
    console.print(category)
    return 0


async def run_insights(services, args) -> int:
    def _on_chunk(chunk: str) -> None:
        if args.verbose:
            console.print(chunk, end="", markup=False, highlight=False, style="dim")

    if args.seasonal:
        insights = await services.advisor.generate_seasonal_plan(
            args.seasonal, args.previous, args.budget, on_chunk=_on_chunk
        )
    else:
        insights = await services.advisor.generate_general_insights(
            args.budget, args.spent, dict(args.category), on_chunk=_on_chunk
        )
    if args.verbose:
        console.print()
    for line in insights:
        console.print(line, markup=False, highlight=False)
    return 0


async def _run_command(args) -> int:
    from fincoach.services import build_services

    services = build_services(get_settings(), loop=asyncio.get_running_loop())
    try:
        if args.command == "chat":
            return await run_chat(services)
        if args.command == "categorize":
            return await run_categorize(services, args.description, args.amount)
        return await run_insights(services, args)
    finally:
        await services.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fincoach",
        description="FinCoach - streaming personal-finance assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fincoach chat                                  Interactive chat
  fincoach categorize "Starbucks coffee" 4.50    Categorize one transaction
  fincoach insights --budget 2000 --spent 1500 --category Food=600
  fincoach insights --seasonal Christmas --budget 500 --previous 650
  fincoach serve --port 8765                     Start the HTTP API
""",
    )
    parser.add_argument(
        "--version", "-v", action="version", version=f"%(prog)s {_version()}"
    )
    parser.add_argument(
        "--log-level", default=None, help="Override FINCOACH_LOG_LEVEL (e.g. DEBUG)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("chat", help="Interactive streaming chat")

    cat = sub.add_parser("categorize", help="Categorize one transaction")
    cat.add_argument("description")
    cat.add_argument("amount", type=_decimal, nargs="?", default=Decimal("0"))

    ins = sub.add_parser("insights", help="Budget insights or a seasonal plan")
    ins.add_argument("--budget", type=_decimal, required=True)
    ins.add_argument("--spent", type=_decimal, default=Decimal("0"))
    ins.add_argument(
        "--category",
        type=_category_amount,
        action="append",
        default=[],
        metavar="NAME=AMOUNT",
        help="Spending per category (repeatable)",
    )
    ins.add_argument("--seasonal", metavar="OCCASION", default=None)
    ins.add_argument("--previous", type=_decimal, default=Decimal("0"))
    ins.add_argument("--verbose", action="store_true", help="Echo the raw stream")

    serve = sub.add_parser("serve", help="Start the HTTP API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", "-p", type=int, default=8765)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(level=args.log_level or settings.log_level)

    try:
        if args.command == "serve":
            from fincoach.api.serve import run_api_server

            run_api_server(host=args.host, port=args.port)
            return 0
        return asyncio.run(_run_command(args))
    except KeyboardInterrupt:
        logger.info("FinCoach stopped.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
