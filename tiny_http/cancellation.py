"""Cooperative cancellation of transport waits through an asyncio.Event."""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

from tiny_http.errors import RequestCancelledError

T = TypeVar("T")


async def run_cancellable(work: Coroutine[object, object, T], cancel_event: asyncio.Event | None) -> T:
    """Await *work*, giving up as soon as *cancel_event* is set.

    When the event wins, *work* is cancelled and awaited before
    RequestCancelledError is raised, so its own cleanup has finished.

    Raises:
        RequestCancelledError: If cancel_event is set before *work* completes.
    """
    if cancel_event is None:
        return await work

    if cancel_event.is_set():
        work.close()
        raise RequestCancelledError("Request was cancelled before it started")

    work_task = asyncio.ensure_future(work)
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancel_task.cancel()
        if not work_task.done():
            work_task.cancel()
            await asyncio.gather(work_task, return_exceptions=True)

    if work_task.cancelled():
        raise RequestCancelledError("Request was cancelled while waiting on the server")
    return work_task.result()
