import asyncio
import concurrent.futures
import logging
import threading

from PySide6.QtCore import QObject, Qt, Signal, Slot

from generation.generator import BackgroundTasks

logger = logging.getLogger(__name__)


class AsyncRunner(QObject):
    """One event loop on a worker thread for all store / upload / render coroutines.

    Results come back to the GUI thread through a queued signal, so the
    callbacks passed to :meth:`submit` may touch widgets.
    """

    _resolved = Signal(object, object)

    def __init__(self, background: BackgroundTasks | None = None, parent=None):
        super().__init__(parent)
        self.background = background or BackgroundTasks()
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="async-runner", daemon=True)
        self._resolved.connect(self._deliver, Qt.QueuedConnection)
        self._thread.start()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro, on_done=None, on_error=None):
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)

        def _finished(f):
            if f.cancelled():
                self._resolved.emit(on_error, "cancelled")
                return
            exc = f.exception()
            if exc is not None:
                logger.debug("Async call failed", exc_info=exc)
                self._resolved.emit(on_error, str(exc))
            else:
                self._resolved.emit(on_done, f.result())

        future.add_done_callback(_finished)
        return future

    def spawn(self, coro, what: str):
        """Fire-and-forget on the runner loop."""
        self.loop.call_soon_threadsafe(self.background.spawn, coro, what)

    @Slot(object, object)
    def _deliver(self, callback, value):
        if callback is not None:
            callback(value)

    def shutdown(self, timeout: float = 15.0):
        if not self.loop.is_running():
            return
        if self.background.pending():
            logger.info("Waiting for %d background task(s)", self.background.pending())
            drain = asyncio.run_coroutine_threadsafe(self.background.drain(), self.loop)
            try:
                drain.result(timeout)
            except concurrent.futures.TimeoutError:
                logger.warning("Background tasks still running at shutdown")
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
