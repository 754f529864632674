from __future__ import annotations
import asyncio, inspect, itertools, logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import DEFAULT_SUBSCRIPTION_POLL_SECS, DEFAULT_TIMEOUT_SECS
from ..domain.decoding import TOPIC0_BY_KIND, decode_log
from ..domain.errors import LedgerConnectionError, NormalizationError, QueryError, RPCError
from ..domain.models import RawEvent
from ..domain.value_types import EventKind
from ..ports.ledger import LedgerClient, NotifyCallback

logger = logging.getLogger(__name__)

def _to_hex_block(n: int) -> str: return hex(int(n))


@dataclass(slots=True)
class _Subscription:
    kind: EventKind
    callback: NotifyCallback
    filter_id: str | None = None
    task: asyncio.Task | None = field(default=None, repr=False)


class HttpxLedgerClient(LedgerClient):
    """
    Ledger client over plain EVM JSON-RPC (HTTP). Push notifications are
    emulated with log filters (`eth_newFilter` + `eth_getFilterChanges`),
    checked every `poll_secs` on a background task per subscription.
    """
    def __init__(
        self,
        rpc_url: str,
        dex_address: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_SECS,
        max_conn: int = 16,
        poll_secs: float = DEFAULT_SUBSCRIPTION_POLL_SECS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.address = dex_address.lower()
        self.poll_secs = poll_secs
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
        )
        self._req_ids = itertools.count(1)
        self._sub_ids = itertools.count(1)
        self._subs: dict[int, _Subscription] = {}

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._req_ids), "method": method, "params": params}
        # retry on 429 with simple backoff
        for attempt in range(3):
            r = await self.client.post(self.rpc_url, json=payload)
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                await asyncio.sleep(delay); continue
            r.raise_for_status()
            data = r.json()
            if "error" in data:
                err = data["error"]
                if isinstance(err, dict):
                    raise RPCError(method, err.get("code"), err.get("message"))
                raise RPCError(method, None, str(err))
            return data.get("result")
        raise RPCError(method, 429, "retries exhausted")

    async def get_head_block(self) -> int:
        try:
            return int(await self._call("eth_blockNumber", []), 16)
        except (httpx.HTTPError, RPCError, TypeError, ValueError) as e:
            raise LedgerConnectionError(f"eth_blockNumber failed: {e}") from e

    async def get_block_timestamp(self, block_number: int) -> int:
        block = await self._call("eth_getBlockByNumber", [_to_hex_block(block_number), False])
        if not block:
            raise RPCError("eth_getBlockByNumber", None, f"block {block_number} not found")
        return int(block["timestamp"], 16)

    def _log_filter(self, kind: EventKind, **extra: str) -> dict[str, Any]:
        return {"address": self.address, "topics": [[TOPIC0_BY_KIND[kind]]], **extra}

    async def query_events(self, kind: EventKind, from_block: int, to_block: int) -> list[RawEvent]:
        flt = self._log_filter(kind, fromBlock=_to_hex_block(from_block), toBlock=_to_hex_block(to_block))
        try:
            logs = await self._call("eth_getLogs", [flt])
        except (httpx.HTTPError, RPCError) as e:
            raise QueryError(f"eth_getLogs {kind} [{from_block}, {to_block}] failed: {e}") from e
        out: list[RawEvent] = []
        for rl in logs or []:
            try:
                out.append(decode_log(kind, rl))
            except NormalizationError as e:
                # one unreadable log must not cost the rest of the batch
                logger.warning("skipping %s log in [%d, %d]: %s", kind, from_block, to_block, e)
        return out

    # ---------------------------- push channel --------------------------------

    async def subscribe(self, kind: EventKind, callback: NotifyCallback) -> int:
        sub = _Subscription(kind=kind, callback=callback)
        sub.filter_id = await self._call("eth_newFilter", [self._log_filter(kind, fromBlock="latest")])
        handle = next(self._sub_ids)
        sub.task = asyncio.create_task(self._watch(sub), name=f"ledgersync-sub-{kind}")
        self._subs[handle] = sub
        return handle

    async def _watch(self, sub: _Subscription) -> None:
        while True:
            await asyncio.sleep(self.poll_secs)
            try:
                if sub.filter_id is None:
                    sub.filter_id = await self._call("eth_newFilter", [self._log_filter(sub.kind, fromBlock="latest")])
                    continue
                changes = await self._call("eth_getFilterChanges", [sub.filter_id])
            except RPCError as e:
                # nodes drop idle filters; reinstall on the next tick
                logger.debug("filter for %s lost (%s); reinstalling", sub.kind, e)
                sub.filter_id = None
                continue
            except httpx.HTTPError as e:
                logger.warning("filter poll for %s failed: %s: %s", sub.kind, type(e).__name__, e)
                continue
            if changes:
                res = sub.callback()
                if inspect.isawaitable(res):
                    await res

    async def unsubscribe(self, handle: int) -> None:
        sub = self._subs.pop(handle, None)
        if sub is None:
            return
        if sub.task is not None:
            sub.task.cancel()
            await asyncio.gather(sub.task, return_exceptions=True)
        if sub.filter_id is not None:
            try:
                await self._call("eth_uninstallFilter", [sub.filter_id])
            except (httpx.HTTPError, RPCError) as e:
                logger.debug("eth_uninstallFilter failed: %s", e)

    async def aclose(self) -> None:
        for handle in list(self._subs):
            await self.unsubscribe(handle)
        await self.client.aclose()
