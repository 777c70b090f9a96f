"""Cooperative waiting primitives shared by the observation loops."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from .errors import ObservationCancelled

SleepFunc = Callable[[float], Awaitable[None]]


async def cancellable_sleep(
    seconds: float,
    cancel_event: Optional[asyncio.Event] = None,
    step: str = "wait",
    sleep: SleepFunc = asyncio.sleep,
) -> None:
    """Suspend for ``seconds`` unless ``cancel_event`` is set first.

    Raises ObservationCancelled if the event is (or becomes) set. Task
    cancellation propagates as ``asyncio.CancelledError``.
    """
    if cancel_event is None:
        await sleep(seconds)
        return
    if cancel_event.is_set():
        raise ObservationCancelled(step)

    sleeper = asyncio.ensure_future(sleep(seconds))
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
        await asyncio.gather(sleeper, waiter, return_exceptions=True)

    if cancel_event.is_set():
        raise ObservationCancelled(step)
    # Surface errors raised by a custom sleep function
    sleeper.result()


__all__ = ["SleepFunc", "cancellable_sleep"]
