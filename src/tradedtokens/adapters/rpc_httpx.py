from __future__ import annotations
import asyncio, httpx
from typing import Any, Sequence
from ..domain.errors import RPCError
from ..domain.models import EventLog, LogsQuery, LogsReply
from ..domain.value_types import Address, BlockTag, Topic0
from ..ports.rpc import RPCClient

_LOGS_ID, _HEAD_ID = 1, 2

def _to_hex_block(n: BlockTag) -> str: return n if n == "latest" else hex(int(n))
def _is_topic_hash(x: str) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x)==66
def _normalize_topic0_list(t0s: Sequence[Topic0]) -> list[str]:
    out: list[str] = []
    for t in t0s:
        s = str(t).strip().lower()
        out.append(s)
    return out

def _build_topics_param(topic0s: Sequence[Topic0]) -> list[list[str]]:
    t0s = _normalize_topic0_list(topic0s)
    if not all(_is_topic_hash(x) for x in t0s):
        raise ValueError(f"Invalid topic0(s): {t0s}")
    return [t0s]

def _rpc_error(err: Any) -> RPCError:
    if isinstance(err, dict):
        return RPCError(str(err.get("message") or err), code=err.get("code"))
    return RPCError(str(err))

def _result(item: dict | None, method: str) -> Any:
    if item is None:
        raise RPCError(f"{method}: no reply in batch response")
    if "error" in item:
        raise _rpc_error(item["error"])
    return item.get("result")

def _parse_logs(res: list[dict] | None) -> list[EventLog]:
    typed: list[EventLog] = []
    for rl in res or []:
        typed.append(EventLog(
            address=Address(rl["address"].lower()),
            topics=tuple(t.lower() for t in rl.get("topics", [])),
            data_hex=str(rl.get("data") or "0x"),
            block_number=int(rl["blockNumber"], 16),
            tx_hash=(rl.get("transactionHash") or "").lower(),
            log_index=int(rl["logIndex"], 16),
        ))
    return typed


class HttpxRPC(RPCClient):
    def __init__(
        self,
        rpc_url: str,
        timeout_s: int = 20,
        max_conn: int = 64,
        *,
        batch: bool = True,
        backoff_s: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.batch = batch
        self.backoff_s = backoff_s
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
        )

    async def __aenter__(self) -> HttpxRPC:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _post(self, payload: dict | list[dict]) -> Any:
        """POST a JSON-RPC payload; transport failures are raised as RPCError."""
        # retry on 429 with simple backoff
        for attempt in range(3):
            try:
                r = await self.client.post(self.rpc_url, json=payload)
            except httpx.TimeoutException as e:
                raise RPCError(f"timeout ({type(e).__name__}: {e})", reason="timeout", code="TIMEOUT") from e
            except httpx.ConnectError as e:
                raise RPCError(f"could not detect network ({e})",
                               reason="could not detect network", code="NETWORK_ERROR") from e
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(self.backoff_s, float(ra)) if ra and ra.isdigit() else (self.backoff_s * (2**attempt))
                await asyncio.sleep(delay); continue
            if r.is_error:
                raise RPCError(f"HTTP {r.status_code} from RPC endpoint", code=r.status_code)
            return r.json()
        raise RPCError("Retries exhausted (HTTP 429)", code=429)

    async def _call(self, method: str, params: list) -> Any:
        data = await self._post({"jsonrpc":"2.0","id":1,"method":method,"params":params})
        if "error" in data:
            raise _rpc_error(data["error"])
        return data.get("result")

    @staticmethod
    def _logs_params(address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: BlockTag) -> list[dict]:
        return [{
            "address": str(address).lower(),
            "fromBlock": _to_hex_block(from_block),
            "toBlock": _to_hex_block(to_block),
            "topics": _build_topics_param(topic0s),
        }]

    async def latest_block(self) -> int:
        return int(await self._call("eth_blockNumber", []), 16)

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: BlockTag) -> list[EventLog]:
        return _parse_logs(await self._call("eth_getLogs", self._logs_params(address, topic0s, from_block, to_block)))

    async def query_logs(self, query: LogsQuery) -> LogsReply:
        if not self.batch:
            return await self._query_logs_gather(query)

        r = query.block_range
        calls = [{"jsonrpc":"2.0","id":_LOGS_ID,"method":"eth_getLogs",
                  "params":self._logs_params(query.address, query.topic0s, r.start, r.end)}]
        if query.with_head:
            calls.append({"jsonrpc":"2.0","id":_HEAD_ID,"method":"eth_blockNumber","params":[]})
        try:
            data = await self._post(calls)
        except Exception as e:
            return LogsReply(error=e, head_error=e if query.with_head else None)

        # some nodes answer a whole batch with a single error object
        if not isinstance(data, list):
            err = _rpc_error(data.get("error", data) if isinstance(data, dict) else data)
            return LogsReply(error=err, head_error=err if query.with_head else None)

        by_id = {item.get("id"): item for item in data if isinstance(item, dict)}
        logs = error = head = head_error = None
        try:
            logs = _parse_logs(_result(by_id.get(_LOGS_ID), "eth_getLogs"))
        except Exception as e:
            error = e
        if query.with_head:
            try:
                head = int(_result(by_id.get(_HEAD_ID), "eth_blockNumber"), 16)
            except Exception as e:
                head_error = e
        return LogsReply(logs=logs, error=error, head=head, head_error=head_error)

    async def _query_logs_gather(self, query: LogsQuery) -> LogsReply:
        # both coroutines are scheduled in the same loop turn
        r = query.block_range
        coros = [self.get_logs(query.address, query.topic0s, r.start, r.end)]
        if query.with_head:
            coros.append(self.latest_block())
        res = await asyncio.gather(*coros, return_exceptions=True)
        for x in res:
            if isinstance(x, BaseException) and not isinstance(x, Exception):
                raise x
        logs, error = (None, res[0]) if isinstance(res[0], Exception) else (res[0], None)
        head = head_error = None
        if query.with_head:
            head, head_error = (None, res[1]) if isinstance(res[1], Exception) else (res[1], None)
        return LogsReply(logs=logs, error=error, head=head, head_error=head_error)
