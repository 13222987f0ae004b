"""Compensating actions for multi-step writes.

Some operations span more than one commit (an organization and its first
admin profile, an invitation row and its delivery). Each completed step
registers the action that undoes it; if a later step fails the registered
compensations run in reverse order and the original error propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from dutylog.core.structured_logging import log_json

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[None]]


class Saga:
    """Async context manager collecting compensations.

    Example:
        async with Saga("setup_profile") as saga:
            org = await create_org()
            saga.on_failure("delete_organization", lambda: delete_org(org.id))
            await create_profile(org)
    """

    def __init__(self, name: str):
        self.name = name
        self._compensations: list[tuple[str, Compensation]] = []

    def on_failure(self, step: str, compensation: Compensation) -> None:
        """Register the action undoing ``step``."""
        self._compensations.append((step, compensation))

    async def compensate(self) -> None:
        """Run registered compensations newest first.

        A failing compensation is logged and skipped; it is never retried.
        """
        while self._compensations:
            step, compensation = self._compensations.pop()
            try:
                await compensation()
            except Exception as exc:
                log_json(
                    logger,
                    logging.ERROR,
                    "saga_compensation_failed",
                    saga=self.name,
                    step=step,
                    error=str(exc),
                    exception=exc.__class__.__name__,
                )
            else:
                log_json(
                    logger,
                    logging.WARNING,
                    "saga_compensated",
                    saga=self.name,
                    step=step,
                )

    async def __aenter__(self) -> Saga:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            await self.compensate()
        else:
            self._compensations.clear()
        return False
