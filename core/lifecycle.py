import asyncio
from contextlib import contextmanager
from typing import Awaitable, Callable, Optional

from config.constants import DRAIN_CHECK_INTERVAL
from core.exceptions import AlreadyRunningError, InvalidStateTransition, StoppedError
from core.models import RunState
from utils.logger import setup_logger

ALLOWED_TRANSITIONS = {
    RunState.IDLE: {RunState.RUNNING},
    RunState.RUNNING: {RunState.STOPPING, RunState.WAITING_FOR_NEXT_CYCLE},
    RunState.STOPPING: {RunState.IDLE},
    RunState.WAITING_FOR_NEXT_CYCLE: {RunState.RUNNING, RunState.STOPPING},
}


class LifecycleController:
    """
    Owns the run/stop state of the daily activity.

    A stop request only raises the cancellation flag. Work in progress notices it
    at its next suspension point, and teardown to IDLE happens once every
    suspended operation has drained and the cycle task has returned.
    """

    def __init__(self, drain_interval: float = DRAIN_CHECK_INTERVAL, logger=None):
        self.logger = logger or setup_logger("Lifecycle")
        self.drain_interval = drain_interval
        self.state = RunState.IDLE
        self.in_flight_count = 0

        self._stop_event = asyncio.Event()
        self._idle_event = asyncio.Event()
        self._idle_event.set()
        self._cycle: Optional[Callable[[], Awaitable]] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._next_cycle_handle: Optional[asyncio.TimerHandle] = None
        self._interrupt_logged = False

    # ---- state -------------------------------------------------------------

    def transition(self, new_state: RunState):
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(f"{self.state.value} -> {new_state.value}")
        self.logger.debug(f"🔁 Run state: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def ensure_not_stopping(self, action: str = "Operation"):
        if self.is_stopping():
            raise StoppedError(f"{action} stopped due to stop request")

    @property
    def is_active(self) -> bool:
        return self.state is not RunState.IDLE

    # ---- suspension points -------------------------------------------------

    @contextmanager
    def in_flight(self):
        self.in_flight_count += 1
        try:
            yield
        finally:
            self.in_flight_count = max(0, self.in_flight_count - 1)

    async def sleep(self, seconds: float) -> bool:
        """Suspend for `seconds`; returns False if a stop request cut the wait short."""
        if self.is_stopping():
            self._log_interrupt("⏹️ Process stopped successfully.")
            return False

        with self.in_flight():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                return True

        self._log_interrupt("⏹️ Process interrupted.")
        return False

    def _log_interrupt(self, message: str):
        if not self._interrupt_logged:
            self.logger.info(message)
            self._interrupt_logged = True

    # ---- run / stop --------------------------------------------------------

    def start(self, cycle: Callable[[], Awaitable]) -> asyncio.Task:
        if self.state is not RunState.IDLE:
            raise AlreadyRunningError("Cycle is still running. Stop the current cycle first.")

        self._cycle = cycle
        self._stop_event.clear()
        self._interrupt_logged = False
        self._idle_event.clear()
        return self._launch()

    def _launch(self) -> asyncio.Task:
        self._next_cycle_handle = None
        self.transition(RunState.RUNNING)
        self._cycle_task = asyncio.create_task(self._run_cycle())
        return self._cycle_task

    async def _run_cycle(self):
        try:
            await self._cycle()
        except StoppedError as e:
            self.logger.info(f"⏹️ {e}")
        except Exception as e:
            self.logger.exception(f"💥 Daily activity failed: {e}")
            if self.state is RunState.RUNNING:
                self.request_stop()

        if self.state is RunState.RUNNING:
            # Cycle returned without scheduling a rerun or being stopped
            self.logger.warning("⚠️ Cycle finished without a next run, stopping")
            self.request_stop()

    def schedule_next_cycle(self, delay_seconds: float):
        self.transition(RunState.WAITING_FOR_NEXT_CYCLE)
        loop = asyncio.get_running_loop()
        self._next_cycle_handle = loop.call_later(delay_seconds, self._launch)

    def request_stop(self) -> bool:
        if self.state not in (RunState.RUNNING, RunState.WAITING_FOR_NEXT_CYCLE):
            self.logger.warning(f"⚠️ Nothing to stop (state: {self.state.value})")
            return False

        self._stop_event.set()
        if self._next_cycle_handle is not None:
            self._next_cycle_handle.cancel()
            self._next_cycle_handle = None
            self.logger.info("🧹 Cleared daily activity interval.")

        self.transition(RunState.STOPPING)
        self.logger.info("🛑 Stopping daily activity. Please wait for ongoing process to complete.")
        self._drain_task = asyncio.create_task(self._drain())
        return True

    def _is_drained(self) -> bool:
        cycle_done = self._cycle_task is None or self._cycle_task.done()
        return self.in_flight_count == 0 and cycle_done

    async def _drain(self):
        while not self._is_drained():
            self.logger.info(f"⏳ Waiting for {self.in_flight_count} process(es) to complete...")
            await asyncio.sleep(self.drain_interval)

        self._stop_event.clear()
        self._interrupt_logged = False
        self.in_flight_count = 0
        self.transition(RunState.IDLE)
        self._idle_event.set()
        self.logger.info("✅ Daily activity stopped successfully.")

    async def wait_until_idle(self):
        await self._idle_event.wait()
