"""Debounced autosave."""

import asyncio
import logging
from typing import Callable, Optional

from nanodirector_core_schemas import ProjectState

from .exceptions import PersistenceError
from .persistence import PersistenceRouter

logger = logging.getLogger(__name__)


class AutosaveCoordinator:
    """Saves the project once it has been quiet for ``quiet_period`` seconds.

    Every change restarts the timer. When it fires, nothing is written if
    autosave is off, an explicit save/load holds the lock, or no destination
    is chosen. In the last case the user is asked to choose one, provided
    the project has an idea or a script worth saving. Write failures are
    logged and never raised.
    """

    def __init__(
        self,
        router: PersistenceRouter,
        snapshot: Callable[[], ProjectState],
        quiet_period: float = 5.0,
        enabled: bool = True,
        ask_destination: Optional[Callable[[], None]] = None,
    ):
        """Initialize the coordinator.

        Args:
            router: Router the save goes through
            snapshot: Returns a copy of the state to write
            quiet_period: Debounce delay in seconds
            enabled: Initial on/off switch
            ask_destination: Prompts the user to pick a save destination
        """
        self.router = router
        self.snapshot = snapshot
        self.quiet_period = quiet_period
        self.ask_destination = ask_destination
        self._enabled = enabled
        self._timer: Optional[asyncio.TimerHandle] = None
        self._write_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value
        if not value:
            self.cancel()

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def notify(self, _state: Optional[ProjectState] = None) -> None:
        """Record a state change and restart the quiet period."""
        if not self._enabled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, autosave not scheduled")
            return
        self.cancel()
        self._timer = loop.call_later(self.quiet_period, self._fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if not self._enabled:
            return
        if self.router.lock.held:
            logger.debug("Autosave skipped: %s in progress", self.router.lock.holder)
            return
        if self._write_task is not None and not self._write_task.done():
            # Previous write still running; try again after another quiet period
            self.notify()
            return

        state = self.snapshot()
        if self.router.destination is None:
            if state.has_content and self.ask_destination is not None:
                self.ask_destination()
            else:
                logger.debug("Autosave skipped: no destination chosen")
            return

        self._write_task = asyncio.ensure_future(self._write(state))
        self.router.lock.track(self._write_task)

    async def _write(self, state: ProjectState) -> None:
        try:
            result = await self.router.save(state, autosave=True)
        except PersistenceError as e:
            logger.warning("Autosave failed: %s", e.message)
            return
        except Exception:
            logger.exception("Autosave failed unexpectedly")
            return

        if result.saved:
            logger.info("Autosaved to %s", result.destination.value)
        else:
            logger.debug("Autosave skipped: %s", result.reason)

    async def wait_idle(self) -> None:
        """Wait for an in-flight autosave write, if any."""
        if self._write_task is not None and not self._write_task.done():
            await asyncio.wait([self._write_task])
