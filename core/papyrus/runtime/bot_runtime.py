"""
Bot Runtime - The periodic driver that ticks the bot's command graph.

The graph never times itself; BotRuntime calls bot.update() every
`interval` seconds on the event loop that also runs the session handlers,
so ticks and reply deliveries never interleave.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from papyrus.graph import NodeResult
from papyrus.observability import set_log_context

if TYPE_CHECKING:
    from papyrus.bot.agent import PapyrusBot

logger = logging.getLogger(__name__)


class BotRuntime:
    """
    Runs bot.update() at a fixed cadence until stopped.

    Example:
        runtime = BotRuntime(bot, interval=0.05)
        await runtime.start()
        ...
        await runtime.stop()   # re-raises if the loop died on a graph error
    """

    def __init__(self, bot: "PapyrusBot", interval: float | None = None):
        self.bot = bot
        self.interval = interval if interval is not None else bot.config.tick_interval
        self._task: asyncio.Task | None = None
        self._published_state = bot.graph.current_state

    async def start(self) -> None:
        """Start ticking. No-op if already running."""
        if self.is_running:
            return
        set_log_context(bot=self.bot.name)
        self._task = asyncio.create_task(self._run())
        logger.info(f"Bot runtime started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Stop ticking and surface any error that ended the loop."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Bot runtime stopped")

    async def step(self) -> NodeResult | None:
        """
        Tick once, then publish the current state if it differs from the last one published.

        Transitions made by session handlers between ticks are reported here too.
        """
        result = self.bot.update()
        current = self.bot.graph.current_state
        if current != self._published_state:
            previous, self._published_state = self._published_state, current
            await self.bot.event_bus.emit_state_changed(self.bot.name, previous, current)
        return result

    async def _run(self) -> None:
        try:
            while True:
                await self.step()
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Bot runtime stopped on error")
            raise

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
