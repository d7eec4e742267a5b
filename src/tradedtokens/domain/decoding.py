from __future__ import annotations

from typing import Sequence

from eth_utils import keccak, to_checksum_address

from .errors import TradeDecodeError
from .models import DecodedTrade


# GPv2Settlement:
# event Trade(address indexed owner, IERC20 sellToken, IERC20 buyToken,
#             uint256 sellAmount, uint256 buyAmount, uint256 feeAmount, bytes orderUid)
TRADE_SIGNATURE = "Trade(address,address,address,uint256,uint256,uint256,bytes)"
TRADE_T0 = "0x" + keccak(text=TRADE_SIGNATURE).hex()

# Marker used by the settlement contract for native ETH buy orders. Not an ERC20.
BUY_ETH_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

# 6 head words (sellToken, buyToken, 3 amounts, orderUid offset) + orderUid length
_MIN_DATA_WORDS = 7


# --------- 32B word slicing (fast, no eth_abi) --------------------------------
def _word(b: bytes, i: int) -> bytes:
    return b[i*32:(i+1)*32]

def _u256(w: bytes) -> int:
    return int.from_bytes(w, "big")

def _addr_from_word(w: bytes) -> str:
    return to_checksum_address("0x" + w[-20:].hex())

def _hex_to_bytes(s: str) -> bytes:
    h = s[2:] if s[:2].lower() == "0x" else s
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h) if h else b""


def _decode_bytes(data_b: bytes, offset: int) -> bytes:
    if offset % 32 or offset + 32 > len(data_b):
        raise TradeDecodeError(f"bad orderUid offset {offset}")
    length = _u256(data_b[offset:offset+32])
    start = offset + 32
    if start + length > len(data_b):
        raise TradeDecodeError(f"orderUid length {length} runs past end of data")
    return data_b[start:start+length]


def decode_trade(topics: Sequence[str], data: str | bytes) -> DecodedTrade:
    """
    Decode a raw `Trade` log. `topics` are 0x-hex strings, `data` is the hex
    payload or raw bytes. Raises TradeDecodeError on anything that is not a
    well-formed Trade event.
    """
    if len(topics) < 2:
        raise TradeDecodeError(f"expected 2 topics, got {len(topics)}")
    if topics[0].lower() != TRADE_T0:
        raise TradeDecodeError(f"unexpected topic0 {topics[0]}")

    try:
        data_b = data if isinstance(data, bytes) else _hex_to_bytes(data)
    except ValueError as e:
        raise TradeDecodeError(f"data is not hex: {e}") from e
    if len(data_b) < 32 * _MIN_DATA_WORDS:
        raise TradeDecodeError(f"data too short for Trade: {len(data_b)} bytes")

    owner_t = topics[1][2:] if topics[1][:2].lower() == "0x" else topics[1]
    return DecodedTrade(
        owner=to_checksum_address("0x" + owner_t[-40:]),
        sell_token=_addr_from_word(_word(data_b, 0)),
        buy_token=_addr_from_word(_word(data_b, 1)),
        sell_amount=_u256(_word(data_b, 2)),
        buy_amount=_u256(_word(data_b, 3)),
        fee_amount=_u256(_word(data_b, 4)),
        order_uid=_decode_bytes(data_b, _u256(_word(data_b, 5))),
    )
