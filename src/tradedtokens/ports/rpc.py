# tradedtokens/ports/rpc.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import EventLog, LogsQuery, LogsReply
from ..domain.value_types import Address, BlockTag, Topic0


class RPCClient(Protocol):
    """Port defining the contract for an Ethereum JSON-RPC logs client."""

    async def get_logs(
        self,
        address: Address,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: BlockTag,
    ) -> list[EventLog]:
        """Return normalized, typed logs for [from_block, to_block] inclusive."""

    async def latest_block(self) -> int:
        """Return the latest block number as an integer."""

    async def query_logs(self, query: LogsQuery) -> LogsReply:
        """
        Dispatch eth_getLogs (and eth_blockNumber when `query.with_head`) together,
        so a load-balanced endpoint routes both to the same node. Failures are
        returned in the reply, not raised.
        """
