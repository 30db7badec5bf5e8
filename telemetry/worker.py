# telemetry/worker.py
"""
QThread that hosts a private asyncio event loop.

Network workers (event stream, remote commands, model downloads) subclass
this so aiohttp code runs off the GUI thread. Work is handed over from the
GUI thread with ``submit()``; results travel back through Qt signals or a
thread-safe channel.
"""
import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Coroutine, Optional

from PyQt5 import QtCore

logger = logging.getLogger(__name__)


class AsyncWorker(QtCore.QThread):
    """
    Worker thread running an asyncio loop until stop() is called.

    Signals:
        status_update(str message) - Status messages for logging
    """

    status_update = QtCore.pyqtSignal(str)

    def __init__(self, name: str = "worker", parent=None):
        super().__init__(parent)
        self.name = name
        self._running = False
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_ready = threading.Event()

    def start(self, *args):
        # Marked running before the thread exists, so a stop() that lands
        # before run() is entered is not overwritten
        self._running = True
        super().start(*args)

    def run(self):
        """Main thread execution loop."""
        try:
            # Create asyncio event loop for this thread
            self._event_loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._event_loop)
            self._loop_ready.set()

            self.status_update.emit(f"{self.name} ready")
            self._event_loop.run_until_complete(self._main())

        except Exception as e:
            logger.error(f"{self.name} error: {e}", exc_info=True)
            self.status_update.emit(f"{self.name} error: {e}")
        finally:
            self._running = False
            if self._event_loop:
                self._cancel_pending()
                self._event_loop.close()
            self._loop_ready.set()
            self.status_update.emit(f"{self.name} stopped")

    async def _main(self):
        """Keep the loop alive for submitted work. Subclasses may override."""
        while self._running:
            await asyncio.sleep(0.1)

    def _cancel_pending(self):
        pending = [t for t in asyncio.all_tasks(self._event_loop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            self._event_loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

    @property
    def is_running(self) -> bool:
        return self._running

    def submit(self, coro: Coroutine) -> Optional[Future]:
        """
        Schedule a coroutine on the worker loop (called from the GUI thread).

        Returns the concurrent future, or None if the worker is not running.
        """
        if not self._loop_ready.wait(timeout=2.0) or not self._running or self._event_loop is None:
            logger.warning(f"{self.name} is not running, dropping submitted work")
            coro.close()
            return None
        return asyncio.run_coroutine_threadsafe(coro, self._event_loop)

    def stop(self):
        """Stop the worker thread (safe before the thread has started running)."""
        logger.info(f"Stopping {self.name}...")
        self._running = False
