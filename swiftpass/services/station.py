import logging
import sqlite3
import threading
import time
from datetime import datetime
from typing import Any, Callable, Literal, TypedDict

from database.db import set_scan_event_dispatch_status
from swiftpass.config import SCAN_COOLDOWN_SECONDS
from swiftpass.context import AuthContext
from swiftpass.services.decision import AccessDecisionEngine, Verdict
from swiftpass.services.dispatcher import ControllerDispatcher, DispatchOutcome
from swiftpass.timewindow import local_now

logger = logging.getLogger(__name__)

StationState = Literal["ready", "scanning", "cooldown"]


class ScanOutcome(TypedDict):
    accepted: bool
    ignored_reason: str | None
    verdict: Verdict | None
    dispatch: DispatchOutcome | None


class ScanStation:
    """
    One scanner device: processes a single scan at a time.

    The scanning flag is held from decode until the controller has been
    signalled. After that the station stays closed for the cooldown; scans
    arriving while busy or cooling down are dropped, not queued.
    """

    def __init__(
        self,
        engine: AccessDecisionEngine | None = None,
        dispatcher: ControllerDispatcher | None = None,
        *,
        cooldown_seconds: float = SCAN_COOLDOWN_SECONDS,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine or AccessDecisionEngine()
        self.dispatcher = dispatcher or ControllerDispatcher()
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.monotonic = monotonic

        self._lock = threading.Lock()
        self._scanning = False
        self._ready_at = 0.0
        self.last_verdict: Verdict | None = None

    @property
    def state(self) -> StationState:
        with self._lock:
            if self._scanning:
                return "scanning"
            if self.monotonic() < self._ready_at:
                return "cooldown"
            return "ready"

    def _claim(self) -> str | None:
        with self._lock:
            if self._scanning:
                return "busy"
            if self.monotonic() < self._ready_at:
                return "cooldown"
            self._scanning = True
            return None

    def _release(self) -> None:
        with self._lock:
            self._scanning = False
            self._ready_at = self.monotonic() + self.cooldown_seconds

    def submit(
        self,
        raw_text: str,
        context: AuthContext | None = None,
        *,
        session_hint: int | None = None,
    ) -> ScanOutcome:
        ignored = self._claim()
        if ignored:
            logger.debug("Scan ignored: station %s", ignored)
            return {"accepted": False, "ignored_reason": ignored, "verdict": None, "dispatch": None}

        try:
            verdict = self.engine.decide(raw_text, self.clock(), context, session_hint=session_hint)
            self.last_verdict = verdict
            dispatch = self.signal(verdict)
        finally:
            self._release()

        return {"accepted": True, "ignored_reason": None, "verdict": verdict, "dispatch": dispatch}

    def signal(self, verdict: Verdict) -> DispatchOutcome:
        """Send (or resend) a verdict to the controller and note the result on its scan event."""
        dispatch = self.dispatcher.signal(verdict)
        event_id = verdict.get("scan_event_id")
        if event_id is not None:
            try:
                set_scan_event_dispatch_status(event_id, dispatch["status"])
            except sqlite3.Error:
                logger.error("Could not record dispatch status for scan event %s", event_id, exc_info=True)
        return dispatch

    def retry_signal(self) -> DispatchOutcome | None:
        """User-initiated resend of the last verdict; never re-decides or re-writes attendance."""
        verdict = self.last_verdict
        if verdict is None:
            return None
        return self.signal(verdict)

    def describe(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "cooldown_seconds": self.cooldown_seconds,
            "controller_configured": self.dispatcher.configured,
            "last_reason_code": self.last_verdict["reason_code"] if self.last_verdict else None,
        }
