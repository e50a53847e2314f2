"""
Global event lifecycle. This module is the only writer of GlobalEvent records.

States: no event → active → expired (→ no event).  Once a minute:
  sweep      → expire_all_past()        mark finished events inactive
  spawn roll → EVENT_SPAWN_CHANCE       only if nothing is active and the
                                        cooldown since the last event ended
                                        has elapsed
"""
from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from idleracer.config import (
    EVENT_CATALOG, EVENT_COOLDOWN, EVENT_DURATION, EVENT_SPAWN_CHANCE,
    EVENT_TICK_SECONDS,
)
from idleracer.models import GlobalEvent, utcnow
from idleracer.storage import (
    create_event_if_none_active, expire_all_past, find_active_event, latest_event,
)

log = logging.getLogger(__name__)


class EventScheduler:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    async def current_event(self, now: datetime | None = None) -> Optional[GlobalEvent]:
        """The event active at `now`; expired-but-unswept events never qualify."""
        return await find_active_event(now or utcnow())

    async def cooldown_elapsed(self, now: datetime) -> bool:
        last = await latest_event()
        if last is None:
            return True
        return now - min(last.end_time, now) >= EVENT_COOLDOWN

    def build_random_event(self, now: datetime) -> GlobalEvent:
        template = self._rng.choice(EVENT_CATALOG)
        return GlobalEvent(**template, start_time=now, end_time=now + EVENT_DURATION)

    async def tick(self, now: datetime | None = None) -> Optional[GlobalEvent]:
        """Advance the state machine once. Returns the event created, if any."""
        now = now or utcnow()
        expired = await expire_all_past(now)
        if expired:
            log.info("Expired %d global event(s)", expired)

        if await find_active_event(now) is not None:
            return None
        if not await self.cooldown_elapsed(now):
            return None
        if self._rng.random() >= EVENT_SPAWN_CHANCE:
            return None

        event = self.build_random_event(now)
        if not await create_event_if_none_active(event, now):
            return None
        log.info("Started global event %s (%s) until %s", event.title, event.type, event.end_time)
        return event

    async def run_tick(self) -> None:
        """APScheduler entry point. A failing tick is logged and the job keeps running."""
        try:
            await self.tick()
        except Exception:
            log.exception("Global event tick failed")


# Module-level instance used by gameplay.py and setup_scheduler()
event_scheduler = EventScheduler()


async def setup_scheduler() -> AsyncIOScheduler:
    """Initialise and start the scheduler; sweep stale events and tick once."""
    scheduler = AsyncIOScheduler(timezone="UTC")

    await event_scheduler.run_tick()
    scheduler.add_job(
        event_scheduler.run_tick,
        "interval",
        seconds=EVENT_TICK_SECONDS,
        id="global_event_tick",
        replace_existing=True,
    )

    scheduler.start()
    return scheduler
