from __future__ import annotations
from typing import Iterable
from ..domain.models import DecodedTrade


def trade_tokens(trades: Iterable[DecodedTrade]) -> set[str]:
    out: set[str] = set()
    for t in trades:
        out.add(t.sell_token)
        out.add(t.buy_token)
    return out


def finalize_tokens(tokens: Iterable[str], sentinel: str) -> tuple[str, ...]:
    """
    Dedup case-insensitively (first spelling wins), drop `sentinel`,
    sort by lowercase address.
    """
    skip = sentinel.lower()
    unique: dict[str, str] = {}
    for t in tokens:
        key = t.lower()
        if key != skip and key not in unique:
            unique[key] = t
    return tuple(unique[k] for k in sorted(unique))
