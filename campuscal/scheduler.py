from __future__ import annotations

import logging
import threading
from typing import Optional

from campuscal.config_manager import ConfigManager
from campuscal.sync_engine import SyncEngine


logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(self, sync_engine: SyncEngine, config_manager: ConfigManager) -> None:
        self.sync_engine = sync_engine
        self.config_manager = config_manager
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._manual_trigger_event = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="campuscal-sync-scheduler", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._manual_trigger_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    def trigger_manual(self) -> None:
        # Triggers made while a cycle runs collapse into a single follow-up cycle.
        self._manual_trigger_event.set()

    def _interval_seconds(self) -> int:
        try:
            return max(30, int(self.config_manager.load().sync.interval_seconds))
        except Exception:
            logger.exception("Failed to load sync interval, using 300 seconds")
            return 300

    def _loop(self) -> None:
        # Silent first cycle so pre-existing events are not announced as new.
        self.sync_engine.run_once(trigger="startup")

        while not self._stop_event.is_set():
            manual = self._manual_trigger_event.wait(timeout=self._interval_seconds())
            # A trigger landing between the timeout and clear() is absorbed by the scheduled run below.
            self._manual_trigger_event.clear()
            if self._stop_event.is_set():
                break
            if manual:
                self.sync_engine.run_once(trigger="manual")
            else:
                self.sync_engine.run_once(trigger="scheduled")
