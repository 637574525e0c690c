"""
Bridge swap status syncer - pulls upstream status, runs the fixers, and
persists whatever changed.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from .db import BridgeSwapStore
from .models import BridgeSwap, SwapType
from .status import PENDING_STATUSES, SwapStatus, is_transition_allowed, parse_status
from .swap_status import SwapStatusInfo, SwapStatusService

logger = structlog.get_logger()

FixSwapStatuses = Callable[[list[BridgeSwap]], Awaitable[list[BridgeSwap]]]


@dataclass
class SyncerState:
    """Counters of the periodic sync loop."""

    is_running: bool = False
    last_sync_time: Optional[datetime] = None
    swaps_updated: int = 0
    sync_errors: int = 0


def apply_upstream_status(swap: BridgeSwap, info: Optional[SwapStatusInfo]) -> BridgeSwap:
    """Copy of ``swap`` carrying the upstream status, if it is known and allowed."""
    if info is None:
        return swap

    status = parse_status(info.status)
    if status is None:
        logger.warning("unknown_upstream_status", swap_id=swap.id, status=info.status)
        return swap

    if status == swap.status:
        return swap

    if not is_transition_allowed(swap.status, status):
        logger.warning(
            "upstream_transition_rejected",
            swap_id=swap.id,
            current=swap.status.value,
            upstream=status.value,
        )
        return swap

    return swap.with_status(status)


class BridgeSwapStatusSyncer:
    """
    Reconciles a user's stored swaps with upstream status and on-chain truth.

    One ``sync`` call runs four passes:
    1. Pending swaps: refresh from LDS, then fix
    2. Expired chain swaps: fix
    3. Lockup-failed swaps: fix
    4. Chain swaps waiting for a user refund: fix

    A failing pass is logged and skipped; the next sync retries it.
    Store calls are blocking and run in a worker thread.
    """

    def __init__(
        self,
        store: BridgeSwapStore,
        status_service: SwapStatusService,
        fix_swap_statuses: FixSwapStatuses,
    ):
        self.store = store
        self.status_service = status_service
        self.fix_swap_statuses = fix_swap_statuses
        self.state = SyncerState()
        self._inflight: dict[str, asyncio.Task[int]] = {}

    async def sync(self, user_id: str) -> int:
        """
        Sync one user's swaps and return how many rows were updated.

        Concurrent calls for the same user share a single run. Never raises.
        """
        user_id = user_id.lower()
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.create_task(self._sync_user(user_id))
            self._inflight[user_id] = task
            task.add_done_callback(lambda done: self._forget(user_id, done))
        return await asyncio.shield(task)

    def _forget(self, user_id: str, task: "asyncio.Task[int]") -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]

    async def _sync_user(self, user_id: str) -> int:
        passes: list[tuple[str, Callable[[str], Awaitable[int]]]] = [
            ("pending", self.sync_pending),
            ("expired", self.sync_expired),
            ("failed", self.sync_failed),
            ("actionable", self.sync_actionable),
        ]

        updated = 0
        for name, run_pass in passes:
            try:
                updated += await run_pass(user_id)
            except Exception as e:
                self.state.sync_errors += 1
                logger.error("swap_sync_pass_failed", user_id=user_id, sync_pass=name, error=str(e))

        if updated:
            logger.info("swaps_synced", user_id=user_id, updated=updated)
        return updated

    async def sync_pending(self, user_id: str) -> int:
        swaps = await asyncio.to_thread(self.store.get_swaps, user_id, statuses=PENDING_STATUSES)
        if not swaps:
            return 0

        upstream = await self.status_service.get_current_status([swap.id for swap in swaps])
        refreshed = [apply_upstream_status(swap, upstream.get(swap.id)) for swap in swaps]
        fixed = await self.fix_swap_statuses(refreshed)
        return await self._persist(swaps, fixed)

    async def sync_expired(self, user_id: str) -> int:
        return await self._fix_stored(
            user_id,
            statuses=[SwapStatus.SWAP_EXPIRED],
            exclude_types=[SwapType.REVERSE, SwapType.SUBMARINE],
        )

    async def sync_failed(self, user_id: str) -> int:
        return await self._fix_stored(user_id, statuses=[SwapStatus.TRANSACTION_LOCKUP_FAILED])

    async def sync_actionable(self, user_id: str) -> int:
        return await self._fix_stored(
            user_id,
            statuses=[SwapStatus.USER_REFUNDABLE],
            types=[SwapType.CHAIN],
        )

    async def _fix_stored(self, user_id: str, **filters: Any) -> int:
        swaps = await asyncio.to_thread(self.store.get_swaps, user_id, **filters)
        if not swaps:
            return 0
        fixed = await self.fix_swap_statuses(swaps)
        return await self._persist(swaps, fixed)

    async def _persist(self, stored: list[BridgeSwap], fixed: list[BridgeSwap]) -> int:
        changed = [new for old, new in zip(stored, fixed) if new.differs_from(old)]
        await asyncio.to_thread(self.store.update_swaps, changed)
        self.state.swaps_updated += len(changed)
        return len(changed)

    async def run_once(self, user_ids: list[str]) -> int:
        """Sync every user once."""
        updated = 0
        for user_id in user_ids:
            updated += await self.sync(user_id)
        self.state.last_sync_time = datetime.now()
        return updated

    async def run(self, user_ids: list[str], interval_seconds: float) -> None:
        """Sync ``user_ids`` every ``interval_seconds`` until stopped."""
        self.state.is_running = True
        logger.info("syncer_starting", users=len(user_ids), interval=interval_seconds)

        while self.state.is_running:
            updated = await self.run_once(user_ids)
            logger.info(
                "sync_cycle_complete",
                updated=updated,
                total_updated=self.state.swaps_updated,
                errors=self.state.sync_errors,
            )
            await asyncio.sleep(interval_seconds)

    def stop(self) -> None:
        self.state.is_running = False
        logger.info("syncer_stopping")
