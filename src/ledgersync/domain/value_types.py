from __future__ import annotations
from typing import Final, Literal, NewType

Address = NewType("Address", str)   # 0x-prefixed, any case
EventKind = Literal["Swap", "AddLiquidity", "RemoveLiquidity"]
KindSelector = Literal["All", "Swap", "AddLiquidity", "RemoveLiquidity"]
ErrorKind = Literal["ConnectionError", "QueryError", "NormalizationError"]
Phase = Literal["idle", "fetching_head", "fetching_ranges", "merging"]

EVENT_KINDS: Final[tuple[EventKind, ...]] = ("Swap", "AddLiquidity", "RemoveLiquidity")
ALL: Final = "All"
