# Overview: Tombstone retention sweeps, on demand and on a cancellable background schedule.

from __future__ import annotations

import threading
from datetime import timedelta

from flask import current_app

from ..time_utils import to_utc_z, utcnow
from . import tombstone_service


def retention_threshold(now, ttl_days: int, safety_sec: int):
    """Tombstones with deleted_at <= threshold are purged."""
    return now - timedelta(days=ttl_days) - timedelta(seconds=safety_sec)


def run_tombstone_retention(
    *,
    ttl_days: int | None = None,
    stale_days: int | None = None,
    safety_sec: int | None = None,
    now=None,
) -> dict:
    """
    Purge tombstones older than ttl + safety margin. Commits.

    staleDays is echoed back; it is reserved for a stale-device check and
    does not change what is deleted.
    """
    cfg = current_app.config
    ttl_days = cfg["TOMBSTONE_RETENTION_DAYS"] if ttl_days is None else ttl_days
    stale_days = cfg["TOMBSTONE_STALE_CLIENT_DAYS"] if stale_days is None else stale_days
    safety_sec = cfg["TOMBSTONE_RETENTION_SAFETY_SEC"] if safety_sec is None else safety_sec

    threshold = retention_threshold(now or utcnow(), ttl_days, safety_sec)
    deleted = tombstone_service.purge_before(threshold)
    current_app.logger.info(
        "tombstone-retention: deleted=%s threshold=%s ttlDays=%s safetySec=%s",
        deleted, to_utc_z(threshold), ttl_days, safety_sec,
    )
    return {
        "deleted": deleted,
        "threshold": to_utc_z(threshold),
        "ttlDays": ttl_days,
        "staleDays": stale_days,
        "safetySec": safety_sec,
    }


class RetentionScheduler:
    """
    Runs run_tombstone_retention every `interval` seconds on a daemon thread.

    tick() performs one sweep synchronously so tests never wait on the clock.
    stop() wakes the thread and joins it. A failed sweep is logged and retried
    on the next tick.
    """

    def __init__(self, app, interval: int | None = None):
        self.app = app
        self.interval = interval or app.config["TOMBSTONE_RETENTION_INTERVAL_SEC"]
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> dict | None:
        with self.app.app_context():
            try:
                return run_tombstone_retention()
            except Exception:
                self.app.logger.exception("tombstone-retention failed")
                return None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="tombstone-retention", daemon=True)
        self._thread.start()
        self.app.logger.info("tombstone-retention scheduler started interval=%ss", self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
