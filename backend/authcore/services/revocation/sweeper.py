from __future__ import annotations

import logging
import threading

from authcore.services.revocation.registry import RevocationRegistry

log = logging.getLogger(__name__)


class RevocationSweeper:
    """
    Background thread that periodically purges expired revocation entries.

    Only needed for stores without native per-entry TTL. The thread is a
    daemon and stops promptly when :meth:`stop` is called.

    :param registry: Registry whose store is purged.
    :param interval: Seconds between sweeps.
    """

    def __init__(self, registry: RevocationRegistry, *, interval: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be positive.")
        self.registry = registry
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        return self.registry.purge_expired()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                log.exception("Revocation sweep failed")

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._run, name="revocation-sweeper", daemon=True
            )
            self._thread.start()
        log.info("Revocation sweeper started (interval=%ss)", self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._stop.set()
            self._thread = None
        if thread is not None:
            thread.join(timeout)
