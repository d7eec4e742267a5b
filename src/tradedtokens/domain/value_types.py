from __future__ import annotations
from typing import NewType, Literal

Address = NewType("Address", str)   # 0x-prefixed, checksummed or lowercase
Topic0  = NewType("Topic0", str)    # 66-char 0x-hash
BlockTag = int | Literal["latest"]
EventKind = Literal["Trade"]
