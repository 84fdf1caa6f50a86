"""Periodic re-broadcast of every room's state to heal missed updates."""
import asyncio
import contextlib
from typing import Optional

from connections import ConnectionHub
from constants import SYNC_INTERVAL_SECONDS
from exceptions import StoreUnavailable
from logging_config import get_logger
from registry import RoomRegistry
from schemas.events import ServerEvent

logger = get_logger(__name__)


class StateSyncLoop:
    """
    Every interval, read each stored room and broadcast it unchanged.

    Read only: never writes and never refreshes a room's TTL.
    """

    def __init__(self, registry: RoomRegistry, hub: ConnectionHub, interval: float = SYNC_INTERVAL_SECONDS):
        self._registry = registry
        self._hub = hub
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"State sync loop started (every {self._interval}s)")

    async def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("State sync loop stopped")

    async def sync_once(self) -> int:
        """Broadcast every room once. Returns the number of rooms broadcast."""
        room_ids = await self._registry.list_room_ids()
        synced = 0
        for room_id in room_ids:
            state = await self._registry.get_room(room_id)
            if state is None:
                # expired or deleted since the listing
                continue
            await self._hub.emit_to_group(room_id, ServerEvent.UPDATE_STATE.value, state.to_wire())
            synced += 1
        return synced

    async def _run(self):
        while True:
            await asyncio.sleep(self._interval)
            try:
                synced = await self.sync_once()
                logger.debug(f"Periodic sync broadcast {synced} rooms")
            except StoreUnavailable as e:
                logger.error(f"Error in periodic sync: {e}", exc_info=True)
            except Exception as e:
                logger.error(f"Unexpected error in periodic sync: {e}", exc_info=True)
