from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Protocol

from mkch_client.storage.settings import SettingsStore

logger = logging.getLogger(__name__)

PathHandler = Callable[[bool], None]


@dataclass(frozen=True, slots=True)
class ReachabilityState:
    path_satisfied: bool = True
    force_offline: bool = False

    @property
    def effective_offline(self) -> bool:
        return self.force_offline or not self.path_satisfied


class PathProbe(Protocol):
    def start(self, handler: PathHandler) -> None: ...

    def stop(self) -> None: ...


class ReachabilityMonitor:
    """Tracks network path status plus the user's persisted force-offline flag.

    Only the probe handed to the monitor can change ``path_satisfied``; it
    reports through the handler passed to ``PathProbe.start``.
    """

    def __init__(self, settings: SettingsStore, *, probe: PathProbe | None = None) -> None:
        self.settings = settings
        self.probe = probe
        self._lock = threading.Lock()
        self._state = ReachabilityState(force_offline=settings.load().force_offline)

    @property
    def state(self) -> ReachabilityState:
        with self._lock:
            return self._state

    @property
    def path_satisfied(self) -> bool:
        return self.state.path_satisfied

    @property
    def force_offline(self) -> bool:
        return self.state.force_offline

    @property
    def effective_offline(self) -> bool:
        return self.state.effective_offline

    def set_force_offline(self, value: bool) -> None:
        self.settings.update(force_offline=value)
        self._transition(force_offline=value)
        logger.info("reachability force_offline=%s", value)

    def start(self) -> None:
        if self.probe is not None:
            self.probe.start(self._on_path_update)

    def stop(self) -> None:
        if self.probe is not None:
            self.probe.stop()

    def _on_path_update(self, satisfied: bool) -> None:
        if self._transition(path_satisfied=satisfied):
            logger.info("reachability path_satisfied=%s", satisfied)

    def _transition(self, **changes: bool) -> bool:
        with self._lock:
            previous = self._state
            current = replace(previous, **changes)
            if current == previous:
                return False
            self._state = current
        return True


class SocketPathProbe:
    """Polls a TCP endpoint and reports whether it is reachable."""

    def __init__(
        self,
        host: str,
        port: int = 443,
        *,
        interval_seconds: float = 10.0,
        timeout_seconds: float = 3.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.host = host
        self.port = port
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout_seconds):
                return True
        except OSError:
            return False

    def start(self, handler: PathHandler) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        # First check runs on the caller thread.
        handler(self.check())
        self._thread = threading.Thread(
            target=self._run,
            args=(handler,),
            name="reachability-probe",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(self.timeout_seconds + 1.0)
            self._thread = None

    def _run(self, handler: PathHandler) -> None:
        while not self._stop.wait(self.interval_seconds):
            handler(self.check())
