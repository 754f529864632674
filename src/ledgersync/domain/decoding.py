from __future__ import annotations

from typing import Any, Mapping, Sequence

from eth_utils import keccak, to_checksum_address

from .errors import NormalizationError
from .models import Event, RawEvent
from .value_types import EventKind

# Event signatures of the pool contract; `user` is the first (indexed) argument.
SIGNATURES: dict[EventKind, str] = {
    "Swap":            "Swap(address,uint256,uint256,bool)",
    "AddLiquidity":    "AddLiquidity(address,uint256,uint256,uint256)",
    "RemoveLiquidity": "RemoveLiquidity(address,uint256,uint256,uint256)",
}


def topic0(kind: EventKind) -> str:
    """0x-prefixed, lowercase keccak of the event signature."""
    return "0x" + keccak(text=SIGNATURES[kind]).hex().removeprefix("0x")


TOPIC0_BY_KIND: dict[EventKind, str] = {k: topic0(k) for k in SIGNATURES}
KIND_BY_TOPIC0: dict[str, EventKind] = {t: k for k, t in TOPIC0_BY_KIND.items()}

# --------- 32B word slicing (no eth_abi) --------------------------------------
def _hex_to_int(v: Any) -> int:
    if isinstance(v, int): return v
    s = str(v).lower()
    return int(s, 16) if s.startswith("0x") else int(s)

def _hexstr_to_bytes(s: str | None) -> bytes:
    if not s: return b""
    h = s[2:] if s[:2].lower() == "0x" else s
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h)

def _word(b: bytes, i: int) -> bytes: return b[i*32:(i+1)*32]
def _u256(w: bytes) -> int: return int.from_bytes(w, "big")
def _addr_from_word(w: bytes) -> str: return to_checksum_address("0x" + w[-20:].hex())


def decode_log(kind: EventKind, log: Mapping[str, Any]) -> RawEvent:
    """
    Turn one `eth_getLogs` entry into a RawEvent. If the payload is short or
    malformed, `args` is left empty so that normalization rejects this single
    event. Unreadable position fields raise NormalizationError.
    """
    try:
        tx_hash = log["transactionHash"].lower()
        log_index = _hex_to_int(log["logIndex"])
        block_number = _hex_to_int(log["blockNumber"])
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise NormalizationError(f"unreadable log position: {type(e).__name__}: {e}") from e

    topics: Sequence[str] = log.get("topics") or []
    args: tuple[Any, ...] = ()
    try:
        data = _hexstr_to_bytes(log.get("data"))
        if len(topics) >= 2:
            user = to_checksum_address("0x" + topics[1][-40:])
            words = [_word(data, i) for i in range(3)]
        else:
            user = _addr_from_word(_word(data, 0))
            words = [_word(data, i) for i in range(1, 4)]
        if all(len(w) == 32 for w in words):
            third: Any = bool(_u256(words[2])) if kind == "Swap" else _u256(words[2])
            args = (user, _u256(words[0]), _u256(words[1]), third)
    except (TypeError, ValueError):
        args = ()
    return RawEvent(
        tx_hash=tx_hash,
        log_index=log_index,
        block_number=block_number,
        kind=kind,
        args=args,
    )


def _amount(v: Any, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise NormalizationError(f"{name} must be a non-negative integer, got {v!r}")
    return v


def normalize(raw: RawEvent, timestamp: int) -> Event:
    """Build the immutable Event for `raw`; raises NormalizationError on bad args."""
    if len(raw.args) != 4:
        raise NormalizationError(f"{raw.event_id}: expected 4 args, got {len(raw.args)}")
    user, a, b, c = raw.args
    try:
        actor = to_checksum_address(user)
    except (TypeError, ValueError) as e:
        raise NormalizationError(f"{raw.event_id}: bad actor address {user!r}") from e

    common = dict(
        id=raw.event_id, kind=raw.kind, actor=actor, tx_hash=raw.tx_hash,
        block_number=raw.block_number, log_index=raw.log_index, timestamp=int(timestamp),
    )
    if raw.kind == "Swap":
        if not isinstance(c, bool):
            raise NormalizationError(f"{raw.event_id}: direction flag must be bool, got {c!r}")
        return Event(**common, amount_in=_amount(a, "amountIn"),
                     amount_out=_amount(b, "amountOut"), is_forward_direction=c)
    if raw.kind in ("AddLiquidity", "RemoveLiquidity"):
        return Event(**common, amount_a=_amount(a, "amountA"), amount_b=_amount(b, "amountB"),
                     liquidity_delta=_amount(c, "liquidity"))
    raise NormalizationError(f"{raw.event_id}: unknown event kind {raw.kind!r}")


def format_units(value: int | None, decimals: int = 18) -> str:
    """Render a base-unit integer as a decimal string (18 decimals like ERC-20 tokens)."""
    if value is None:
        return ""
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10 ** decimals)
    frac_s = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_s}" if frac_s else f"{sign}{whole}"
