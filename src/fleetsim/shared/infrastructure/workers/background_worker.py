import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BackgroundWorker(ABC):
    """
    Base class for background workers

    Provides infrastructure for periodic task execution in a separate thread.
    Subclasses implement the do_work() method with their specific logic.

    Features:
    - Runs in daemon thread (won't prevent app shutdown)
    - Configurable interval, first run one interval after start
    - One cancellation token per run: a stopped run never ticks again,
      even after a new run has been started
    - Exception handling
    """

    def __init__(self, name: str, interval_seconds: float):
        """
        Initialize background worker

        Args:
            name: Worker name (for logging)
            interval_seconds: Seconds between work executions
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self.thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._lock = threading.Lock()

        logger.debug(
            f"Background worker '{name}' initialized "
            f"(interval: {interval_seconds}s)"
        )

    @abstractmethod
    def do_work(self):
        """
        Implement this method with the worker's logic

        This method will be called periodically at the configured interval.
        Exceptions are logged and the loop keeps running.
        """

    def start(self):
        """Start the background worker"""
        with self._lock:
            if self._stop_event is not None and not self._stop_event.is_set():
                logger.warning(f"Worker '{self.name}' is already running")
                return

            stop_event = threading.Event()
            self._stop_event = stop_event
            self.thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                daemon=True,  # Daemon thread won't prevent app shutdown
                name=f"Worker-{self.name}"
            )
            self.thread.start()

        logger.debug(f"Worker '{self.name}' started")

    def stop(self, wait: bool = False, timeout: float = 5):
        """
        Stop the background worker

        Args:
            wait: Join the worker thread. Must stay False when called from
                  code the worker thread itself may be blocked on.
            timeout: Seconds to wait for the thread when wait is True
        """
        with self._lock:
            stop_event = self._stop_event
            thread = self.thread

        if stop_event is None or stop_event.is_set():
            logger.debug(f"Worker '{self.name}' is not running")
            return

        stop_event.set()

        if wait and thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)

        logger.debug(f"Worker '{self.name}' stopped")

    def _run_loop(self, stop_event: threading.Event):
        """Internal loop that executes work periodically"""
        logger.debug(f"Worker '{self.name}' loop started")

        # wait() returns True once the token is set
        while not stop_event.wait(self.interval_seconds):
            try:
                self.do_work()
            except Exception as e:
                logger.error(
                    f"Error in worker '{self.name}': {e}",
                    exc_info=True
                )

        logger.debug(f"Worker '{self.name}' loop ended")

    def is_running(self) -> bool:
        """Check if a worker is running"""
        stop_event = self._stop_event
        return stop_event is not None and not stop_event.is_set()
