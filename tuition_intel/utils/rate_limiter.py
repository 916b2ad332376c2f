"""
Thread-safe request pacing for batch extraction.

Problem: a batch walking many targets (possibly across worker threads) would
hit the Gemini API back to back and trip its rate limits.

Solution: a shared pacer keyed by upstream name that enforces a minimum
spacing between consecutive calls.

Usage:
    from tuition_intel.utils.rate_limiter import RequestPacer

    pacer = RequestPacer(delay=2.0)
    pacer.wait("gemini")
    record = service.extract(school, program)
"""

import threading
import time
from typing import Callable, Dict, Optional


class RequestPacer:
    """
    Thread-safe minimum spacing between upstream calls.

    Maintains per-key timing across all threads/workers.
    """

    def __init__(
        self,
        delay: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delay = delay
        self._clock = clock
        self._sleep = sleep
        self._locks: Dict[str, threading.Lock] = {}
        self._last_request: Dict[str, Optional[float]] = {}
        self._master_lock = threading.Lock()

    def _get_key_lock(self, key: str) -> threading.Lock:
        with self._master_lock:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
                self._last_request[key] = None
            return self._locks[key]

    def wait(self, key: str = "gemini", delay: Optional[float] = None) -> float:
        """
        Block until `delay` seconds have passed since the previous call for `key`.

        The first call for a key never waits.

        Args:
            key: Upstream identifier
            delay: Override for the pacer's default spacing

        Returns:
            Seconds actually waited
        """
        delay = self.delay if delay is None else delay
        lock = self._get_key_lock(key)

        with lock:
            last = self._last_request[key]
            wait_time = 0.0
            if last is not None:
                elapsed = self._clock() - last
                if elapsed < delay:
                    wait_time = delay - elapsed
                    self._sleep(wait_time)

            self._last_request[key] = self._clock()
            return wait_time

    def reset(self, key: Optional[str] = None):
        """
        Reset pacing state.

        Args:
            key: Specific key to reset, or None to reset all
        """
        with self._master_lock:
            if key:
                self._last_request[key] = None
            else:
                self._last_request = {k: None for k in self._last_request}
