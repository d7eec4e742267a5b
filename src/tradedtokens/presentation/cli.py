import asyncio, json, logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..adapters.rpc_httpx import HttpxRPC
from ..application.traded_tokens import get_all_traded_tokens
from ..config import load_settings
from ..domain.errors import RangeExhaustedError, RPCError, TradeDecodeError
from ..domain.models import FetchStats
from ..domain.value_types import BlockTag

app = typer.Typer(add_completion=False)
console = Console()


def _parse_block(value: str) -> BlockTag:
    if value.strip().lower() == "latest":
        return "latest"
    try:
        return int(value, 0)
    except ValueError:
        raise typer.BadParameter(f"expected a block number or 'latest', got {value!r}") from None


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def traded_tokens(
    rpc_url: Optional[str] = typer.Argument(None, help="RPC endpoint URL (or TRADEDTOKENS_RPC_URL)"),
    settlement: Optional[str] = typer.Option(None, help="Settlement contract address"),
    from_block: int = typer.Option(0, "--from-block", help="First block (inclusive)"),
    to_block: str = typer.Option("latest", "--to-block", help="Last block (inclusive) or 'latest'"),
    concurrency: Optional[int] = typer.Option(None, help="Max in-flight log queries"),
    timeout_s: Optional[int] = typer.Option(None, "--timeout-s", help="HTTP timeout per request"),
    batch: Optional[bool] = typer.Option(None, "--batch/--no-batch", help="Send getLogs+blockNumber as one JSON-RPC batch"),
    out: Optional[str] = typer.Option(None, "--out", help="Write {tokens, toBlock} JSON here"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """List every token traded through the settlement contract in a block range."""
    settings = load_settings()
    rpc_url = rpc_url or settings.rpc_url
    if not rpc_url:
        raise typer.BadParameter("pass RPC_URL or set TRADEDTOKENS_RPC_URL", param_hint="RPC_URL")
    end = _parse_block(to_block)
    _setup_logging(log_level or settings.log_level)
    stats = FetchStats()

    async def main():
        async with HttpxRPC(
            rpc_url,
            timeout_s=timeout_s or settings.timeout_s,
            max_conn=settings.max_conn,
            batch=settings.batch if batch is None else batch,
        ) as rpc:
            return await get_all_traded_tokens(
                rpc, settlement or settings.settlement, from_block, end,
                concurrency=concurrency or settings.concurrency, stats=stats,
            )

    try:
        res = asyncio.run(main())
    except (RangeExhaustedError, RPCError, TradeDecodeError, ValueError) as e:
        console.print(f"[bold red]error[/]: {e}")
        raise typer.Exit(1)

    for token in res.tokens:
        console.print(token)
    console.print(
        f"[bold]done[/]: {len(res.tokens)} tokens up to block {res.to_block:,} • "
        f"queries={stats.queries} splits={stats.splits} logs={stats.logs}"
    )
    if out:
        with open(out, "w") as f:
            json.dump({"tokens": list(res.tokens), "toBlock": res.to_block}, f, indent=2)
            f.write("\n")


if __name__ == "__main__":
    app()
