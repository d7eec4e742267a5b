from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from ..domain.decoding import BUY_ETH_ADDRESS, TRADE_T0, decode_trade
from ..domain.errors import DEFAULT_RULES, ClassificationRule, FailureKind, RangeExhaustedError, classify
from ..domain.models import BlockRange, DecodedTrade, FetchStats, LogsQuery, LogsReply, QueryResult
from ..domain.value_types import Address, BlockTag, Topic0
from ..ports.rpc import RPCClient
from .tokens import finalize_tokens, trade_tokens

log = logging.getLogger(__name__)

Decoder = Callable[[Sequence[str], str], DecodedTrade]


@dataclass(slots=True)
class FetchContext:
    rpc: RPCClient
    settlement: Address
    topic0: Topic0
    decoder: Decoder
    rules: Sequence[ClassificationRule]
    sem: asyncio.Semaphore
    stats: FetchStats


async def _split_head(ctx: FetchContext, reply: LogsReply) -> int:
    """Head from the batch, or one eth_blockNumber call when the whole batch failed."""
    if reply.head_error is None:
        return reply.resolve_head()
    log.info("Block number lost with the failed batch (%s), asking again", reply.head_error)
    async with ctx.sem:
        return await ctx.rpc.latest_block()


async def _fetch_range(ctx: FetchContext, rng: BlockRange) -> tuple[set[str], int]:
    """
    Fetch Trade tokens for `rng`, bisecting on retryable node failures.
    Only the top-level range may be open ("latest"); every split hands concrete
    bounds down, so the head is resolved at most once per call tree.
    Returns (tokens, last block covered).
    """
    query = LogsQuery(address=ctx.settlement, topic0s=(ctx.topic0,), block_range=rng, with_head=rng.is_open)
    async with ctx.sem:
        reply = await ctx.rpc.query_logs(query)
    ctx.stats.queries += 1

    if reply.ok:
        log.debug("Processed events from block %s to %s", rng.start, rng.end)
        ctx.stats.logs += len(reply.logs)
        tokens = trade_tokens(ctx.decoder(ev.topics, ev.data_hex) for ev in reply.logs)
        return tokens, (reply.resolve_head() if rng.is_open else rng.end)

    kind = classify(reply.error, ctx.rules)
    if kind is FailureKind.UNRECOGNIZED:
        raise reply.error
    ctx.stats.failures[kind.value] = ctx.stats.failures.get(kind.value, 0) + 1
    log.warning("Failed to process events from block %s to %s (%s), reducing range...",
                rng.start, rng.end, kind.value)

    concrete = rng.resolve(await _split_head(ctx, reply)) if rng.is_open else rng
    if concrete.is_atomic():
        raise RangeExhaustedError(concrete.start) from reply.error

    left, right = concrete.split()
    ctx.stats.splits += 1
    t_left = asyncio.ensure_future(_fetch_range(ctx, left))
    t_right = asyncio.ensure_future(_fetch_range(ctx, right))
    try:
        (tokens_l, _), (tokens_r, to_block) = await asyncio.gather(t_left, t_right)
    except BaseException:
        t_left.cancel(); t_right.cancel()
        # collect the sibling so its outcome is never left unretrieved
        await asyncio.gather(t_left, t_right, return_exceptions=True)
        raise
    return tokens_l | tokens_r, to_block


async def get_all_traded_tokens(
    rpc: RPCClient,
    settlement: str,
    from_block: int,
    to_block: BlockTag = "latest",
    *,
    decoder: Decoder = decode_trade,
    sentinel: str = BUY_ETH_ADDRESS,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
    concurrency: int = 1,
    stats: FetchStats | None = None,
) -> QueryResult:
    """
    List every token traded by `settlement` in [from_block, to_block] (both inclusive).
    `to_block="latest"` is resolved once, together with the first log query, and
    returned as `QueryResult.to_block`.
    """
    if isinstance(to_block, str) and to_block != "latest":
        raise ValueError(f"to_block must be an int or 'latest', got {to_block!r}")
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    rng = BlockRange(int(from_block), to_block)

    ctx = FetchContext(
        rpc=rpc,
        settlement=Address(settlement),
        topic0=Topic0(TRADE_T0),
        decoder=decoder,
        rules=rules,
        sem=asyncio.Semaphore(concurrency),
        stats=stats if stats is not None else FetchStats(),
    )
    tokens, resolved = await _fetch_range(ctx, rng)
    result = QueryResult(tokens=finalize_tokens(tokens, sentinel), to_block=resolved)
    log.info("Found %d traded tokens in blocks %s-%s (%d queries, %d splits)",
             len(result.tokens), rng.start, resolved, ctx.stats.queries, ctx.stats.splits)
    return result
