import asyncio
import logging
from typing import List

logger = logging.getLogger(__name__)


class Navigator:
    """
    Tracks the route the console is showing.

    Delayed navigations (redirect after save, redirect to login after the
    session expired) run as asyncio tasks so they can be awaited or cancelled.
    """

    def __init__(self, initial_route: str = "/"):
        self.current = initial_route
        self.history: List[str] = [initial_route]
        self._pending: List[asyncio.Task] = []

    def navigate(self, route: str):
        if route == self.current:
            return
        logger.debug(f"Navigating {self.current} -> {route}")
        self.current = route
        self.history.append(route)

    def navigate_later(self, route: str, delay: float) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._navigate_after(route, delay))
        self._pending.append(task)
        return task

    async def _navigate_after(self, route: str, delay: float):
        if delay > 0:
            await asyncio.sleep(delay)
        self.navigate(route)

    def is_at(self, route: str) -> bool:
        return self.current == route or self.current.startswith(route.rstrip('/') + '/')

    @property
    def has_pending(self) -> bool:
        return any(not task.done() for task in self._pending)

    async def settle(self):
        """Wait until every scheduled navigation has happened"""
        while self._pending:
            pending, self._pending = self._pending, []
            await asyncio.gather(*pending, return_exceptions=True)

    def cancel_pending(self):
        for task in self._pending:
            if not task.done():
                task.cancel()
        self._pending = []
