import asyncio
import logging
from typing import Dict, Coroutine


logger = logging.getLogger(__name__)


class BackgroundTaskMixin:
    """
    Миксин для управления фоновыми задачами asyncio.
    Обеспечивает отслеживание задач и их корректную отмену.
    """
    _bg_tasks: Dict[str, asyncio.Task]

    def start_task(self, name: str, coro: Coroutine) -> asyncio.Task:
        """
        Запускает новую фоновую задачу, отменяя предыдущую с тем же именем.
        """
        if not hasattr(self, "_bg_tasks"):
            self._bg_tasks = {}

        self.cancel_task(name)

        task = asyncio.create_task(coro)
        self._bg_tasks[name] = task

        def _done(t: asyncio.Task):
            if name in self._bg_tasks and self._bg_tasks[name] == t:
                del self._bg_tasks[name]
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Background task '{name}' failed: {t.exception()}")

        task.add_done_callback(_done)
        return task

    def cancel_task(self, name: str):
        """Отменяет указанную задачу по имени."""
        if not hasattr(self, "_bg_tasks"): return

        if name in self._bg_tasks:
            task = self._bg_tasks[name]
            if not task.done():
                task.cancel()
            del self._bg_tasks[name]

    def cancel_all_tasks(self):
        """Отменяет все отслеживаемые задачи."""
        if not hasattr(self, "_bg_tasks"): return

        for name in list(self._bg_tasks.keys()):
            self.cancel_task(name)

    async def wait_tasks(self):
        """Дожидается завершения всех текущих фоновых задач."""
        if not hasattr(self, "_bg_tasks"): return

        while self._bg_tasks:
            await asyncio.gather(*list(self._bg_tasks.values()), return_exceptions=True)
