from __future__ import annotations
from dataclasses import dataclass, field
from .value_types import Address, BlockTag, Topic0


@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: BlockTag

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start block must be >= 0, got {self.start}")
        if self.end != "latest" and self.start > self.end:
            raise ValueError(f"start block ({self.start}) must be <= end block ({self.end})")

    @property
    def is_open(self) -> bool: return self.end == "latest"

    def span(self) -> int:
        if self.is_open:
            raise ValueError("open range has no span until resolved")
        return self.end - self.start + 1

    def is_atomic(self) -> bool: return self.start == self.end

    def resolve(self, head: int) -> BlockRange:
        """Concrete copy with the latest marker replaced by `head`."""
        if not self.is_open:
            return self
        return BlockRange(self.start, max(self.start, head))

    def split(self) -> tuple[BlockRange, BlockRange]:
        if self.is_open:
            raise ValueError("cannot split an unresolved range")
        if self.is_atomic():
            raise ValueError(f"cannot split single-block range {self}")
        mid = (self.end + self.start) // 2
        return BlockRange(self.start, mid), BlockRange(mid + 1, self.end)

    def __str__(self) -> str: return f"[{self.start}, {self.end}]"


@dataclass(slots=True, frozen=True)
class EventLog:
    address: Address
    topics: tuple[str, ...]            # lowercased with 0x
    data_hex: str                      # hex with 0x (or "0x")
    block_number: int
    tx_hash: str
    log_index: int


@dataclass(slots=True, frozen=True)
class DecodedTrade:
    owner: str                         # checksum address
    sell_token: str
    buy_token: str
    sell_amount: int
    buy_amount: int
    fee_amount: int
    order_uid: bytes


@dataclass(slots=True, frozen=True)
class LogsQuery:
    """eth_getLogs request, optionally paired with eth_blockNumber in one batch."""
    address: Address
    topic0s: tuple[Topic0, ...]
    block_range: BlockRange
    with_head: bool = False


@dataclass(slots=True, frozen=True)
class LogsReply:
    logs: list[EventLog] | None = None
    error: BaseException | None = None
    head: int | None = None
    head_error: BaseException | None = None

    @property
    def ok(self) -> bool: return self.error is None and self.logs is not None

    def resolve_head(self) -> int:
        if self.head_error is not None:
            raise self.head_error
        if self.head is None:
            raise RuntimeError("eth_blockNumber was not part of this batch")
        return self.head


@dataclass(slots=True, frozen=True)
class QueryResult:
    tokens: tuple[str, ...]
    to_block: int


@dataclass(slots=True)
class FetchStats:
    queries: int = 0
    splits: int = 0
    logs: int = 0
    failures: dict[str, int] = field(default_factory=dict)
