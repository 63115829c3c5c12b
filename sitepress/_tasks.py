"""Helpers for awaiting groups of tasks without leaving strays behind."""

from __future__ import annotations

import asyncio
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

T = typ.TypeVar("T")


async def cancel_all(tasks: cabc.Sequence[asyncio.Future[typ.Any]]) -> None:
    """Cancel ``tasks`` and wait until every one has finished."""
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def gather_or_cancel(tasks: cabc.Sequence[asyncio.Future[T]]) -> list[T]:
    """Return the results of ``tasks`` in order.

    When one task fails the others are cancelled and drained before the
    error propagates, so no task outlives the caller with an unread result.
    """
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        await cancel_all(tasks)
        raise


__all__ = ["cancel_all", "gather_or_cancel"]
