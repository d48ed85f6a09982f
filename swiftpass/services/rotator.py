import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Literal, Mapping, Protocol

from swiftpass.config import CREDENTIAL_PERIOD_MS
from swiftpass.credentials import Credential, encode_credential, new_nonce
from swiftpass.timewindow import ensure_aware, local_now

logger = logging.getLogger(__name__)

RotatorState = Literal["idle", "active"]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(frozen=True)
class IssuedCredential:
    text: str
    credential: Credential


class CredentialRotator:
    """
    Keeps one live credential for the bound subject and re-issues it every
    period.

    Exactly one timer is pending while active. A manual refresh cancels it,
    issues at once and re-arms; a refresh that arrives while an issuance is
    already running is dropped. Timers from a cancelled arm are recognised by
    their generation number and never issue.
    """

    def __init__(
        self,
        period_ms: int = CREDENTIAL_PERIOD_MS,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        if period_ms <= 0:
            raise ValueError("Rotation period must be positive.")
        self.period = timedelta(milliseconds=period_ms)
        self.scheduler = scheduler or ThreadingScheduler()
        self.clock = clock

        self._state_lock = threading.Lock()
        self._issue_lock = threading.Lock()
        self._subject: Mapping[str, Any] | None = None
        self._current: IssuedCredential | None = None
        self._pending: TimerHandle | None = None
        self._generation = 0

    @property
    def state(self) -> RotatorState:
        with self._state_lock:
            return "active" if self._subject is not None else "idle"

    @property
    def subject_id(self) -> str | None:
        with self._state_lock:
            return str(self._subject["id"]) if self._subject is not None else None

    def current(self) -> IssuedCredential | None:
        with self._state_lock:
            return self._current

    def time_remaining(self, now: datetime | None = None) -> timedelta:
        issued = self.current()
        if issued is None:
            return timedelta(0)
        moment = ensure_aware(now or self.clock())
        return max(timedelta(0), issued.credential.expires_at - moment)

    def bind(self, subject: Mapping[str, Any]) -> IssuedCredential | None:
        if not str(subject.get("id") or "").strip():
            raise ValueError("Cannot bind a subject without an id.")
        with self._state_lock:
            self._cancel_pending_locked()
            self._subject = dict(subject)
            self._current = None
        logger.info("Credential rotator bound to subject %s", subject.get("id"))
        self.refresh()
        return self.current()

    def unbind(self) -> None:
        with self._state_lock:
            subject_id = self._subject.get("id") if self._subject else None
            self._cancel_pending_locked()
            self._subject = None
            self._current = None
        if subject_id is not None:
            logger.info("Credential rotator released subject %s", subject_id)

    def refresh(self) -> bool:
        """
        Issue now and restart the period. Returns False when idle or when the
        call was coalesced into an issuance already in flight.
        """
        if not self._issue_lock.acquire(blocking=False):
            return False
        try:
            with self._state_lock:
                if self._subject is None:
                    return False
                self._cancel_pending_locked()
                generation = self._generation
            return self._issue(generation)
        finally:
            self._issue_lock.release()

    def _on_timer(self, generation: int) -> None:
        with self._state_lock:
            if generation != self._generation or self._subject is None:
                return
        if not self._issue_lock.acquire(blocking=False):
            return
        try:
            self._issue(generation)
        finally:
            self._issue_lock.release()

    def _issue(self, generation: int) -> bool:
        """
        Encode, publish and arm the next timer. Caller holds the issue lock.

        A bind that lands while encoding cannot issue for itself (its refresh
        is coalesced into this one), so the loop starts over for the newly
        bound subject instead of giving up.
        """
        with self._state_lock:
            if generation != self._generation or self._subject is None:
                return False
            subject = self._subject

        while True:
            issued = self._encode(subject)
            with self._state_lock:
                if generation == self._generation and self._subject is subject:
                    self._current = issued
                    self._generation += 1
                    armed = self._generation
                    self._pending = self.scheduler.call_later(
                        self.period.total_seconds(),
                        lambda: self._on_timer(armed),
                    )
                    break
                if self._subject is None or self._pending is not None:
                    return False
                logger.debug("Subject re-bound during issuance; issuing for %s", self._subject.get("id"))
                generation = self._generation
                subject = self._subject

        logger.debug(
            "Issued credential for %s valid until %s",
            subject["id"],
            issued.credential.expires_at.isoformat(),
        )
        return True

    def _encode(self, subject: Mapping[str, Any]) -> IssuedCredential:
        issued_at = ensure_aware(self.clock())
        expires_at = issued_at + self.period
        nonce = new_nonce()
        return IssuedCredential(
            text=encode_credential(subject, issued_at, expires_at, nonce),
            credential=Credential(
                subject_id=str(subject["id"]),
                issued_at=issued_at,
                expires_at=expires_at,
                nonce=nonce,
                name=subject.get("full_name"),
                student_number=subject.get("student_number"),
                course=subject.get("course"),
                section=subject.get("section"),
            ),
        )

    def _cancel_pending_locked(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


class RotatorRegistry:
    """One rotator per signed-in subject."""

    def __init__(self, factory: Callable[[], CredentialRotator] | None = None):
        self.factory = factory or CredentialRotator
        self._lock = threading.Lock()
        self._rotators: dict[str, CredentialRotator] = {}

    def bind(self, subject: Mapping[str, Any]) -> CredentialRotator:
        subject_id = str(subject["id"])
        with self._lock:
            rotator = self._rotators.get(subject_id)
            if rotator is None:
                rotator = self.factory()
                self._rotators[subject_id] = rotator
        rotator.bind(subject)
        return rotator

    def get(self, subject_id: str) -> CredentialRotator | None:
        with self._lock:
            return self._rotators.get(subject_id)

    def unbind(self, subject_id: str) -> bool:
        with self._lock:
            rotator = self._rotators.pop(subject_id, None)
        if rotator is None:
            return False
        rotator.unbind()
        return True

    def clear(self) -> None:
        with self._lock:
            rotators = list(self._rotators.values())
            self._rotators.clear()
        for rotator in rotators:
            rotator.unbind()
