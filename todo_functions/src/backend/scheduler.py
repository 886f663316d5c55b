"""Runs registered schedules on their fixed interval inside the event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Dict, Optional

from .context import ServiceContext
from .registry import ScheduleBinding

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class IntervalScheduler:
    """
    One asyncio task per schedule: sleep interval_seconds, run the handler,
    repeat. A failing run is logged and the schedule keeps going.
    """

    def __init__(self, context: ServiceContext) -> None:
        self.context = context
        self._tasks: Dict[str, asyncio.Task] = {}
        self.runs: Dict[str, int] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        for binding in self.context.registry.schedules.values():
            if binding.name not in self._tasks:
                self.runs.setdefault(binding.name, 0)
                self._tasks[binding.name] = asyncio.create_task(self._run(binding), name=f"schedule:{binding.name}")
                logger.info("Scheduled %s every %.3gs", binding.name, binding.interval_seconds)

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run_once(self, name: str) -> Optional[object]:
        """Run one schedule's handler immediately, outside its cadence."""
        binding = self.context.registry.schedules[name]
        return await self._invoke(binding)

    async def _invoke(self, binding: ScheduleBinding) -> Optional[object]:
        result = binding.handler(self.context)
        if inspect.isawaitable(result):
            result = await result
        self.runs[binding.name] = self.runs.get(binding.name, 0) + 1
        return result

    async def _run(self, binding: ScheduleBinding) -> None:
        while True:
            await asyncio.sleep(binding.interval_seconds)
            try:
                await self._invoke(binding)
            except Exception:
                logger.exception("Scheduled function %s failed", binding.name)
