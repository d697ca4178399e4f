"""Shared async helpers."""

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def settle_all(
    aws: Iterable[Awaitable[T]],
    concurrency: int | None = None,
    label: str = "task",
) -> list[T]:
    """
    Run awaitables concurrently and keep only the successful results.

    A failing awaitable is logged and dropped; its siblings are unaffected.
    Results keep the input order. With ``concurrency`` set, at most that many
    run at once.
    """
    aws = list(aws)
    if not aws:
        return []

    if concurrency:
        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(aw: Awaitable[T]) -> T:
            async with semaphore:
                return await aw

        aws = [_bounded(aw) for aw in aws]

    outcomes = await asyncio.gather(*aws, return_exceptions=True)

    results: list[T] = []
    for index, outcome in enumerate(outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError | KeyboardInterrupt):
                raise outcome
            logger.warning(
                "settled_task_failed",
                label=label,
                index=index,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
            continue
        results.append(outcome)
    return results
