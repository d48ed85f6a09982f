import logging
from typing import Any, Literal, Mapping, TypedDict

import requests

from swiftpass import config
from swiftpass.errors import DispatchFailed

logger = logging.getLogger(__name__)

DispatchStatus = Literal["acknowledged", "failed", "not_configured"]


class DispatchOutcome(TypedDict):
    status: DispatchStatus
    token: str
    http_status: int | None
    detail: str | None


def _outcome(
    status: DispatchStatus,
    token: str,
    *,
    http_status: int | None = None,
    detail: str | None = None,
) -> DispatchOutcome:
    return {
        "status": status,
        "token": token,
        "http_status": http_status,
        "detail": detail,
    }


class ControllerDispatcher:
    """
    Sends a verdict to the ESP32 door controller.

    The attendance write is authoritative: a failed signal is reported in the
    outcome and never raised to the caller or retried here.
    """

    def __init__(
        self,
        host: str | None = None,
        *,
        grant_token: str | None = None,
        deny_token: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.host = (config.CONTROLLER_HOST if host is None else host).strip()
        self.grant_token = grant_token or config.CONTROLLER_GRANT_TOKEN
        self.deny_token = deny_token or config.CONTROLLER_DENY_TOKEN
        self.timeout = timeout or config.CONTROLLER_TIMEOUT_SECONDS
        self.http = session or requests

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def _url(self, path: str) -> str:
        base = self.host if "://" in self.host else f"http://{self.host}"
        return f"{base.rstrip('/')}{path}"

    def token_for(self, verdict: Mapping[str, Any]) -> str:
        return self.grant_token if verdict.get("granted") else self.deny_token

    def signal(self, verdict: Mapping[str, Any]) -> DispatchOutcome:
        token = self.token_for(verdict)
        if not self.configured:
            logger.warning("Controller host not configured; %s signal not sent", token)
            return _outcome("not_configured", token, detail="Controller host is not configured.")

        try:
            status_code = self._post_scan(token)
        except DispatchFailed as exc:
            logger.warning("Controller signal %s failed: %s", token, exc)
            return _outcome("failed", token, http_status=exc.http_status, detail=str(exc))

        logger.info("Controller acknowledged %s", token)
        return _outcome("acknowledged", token, http_status=status_code)

    def _post_scan(self, token: str) -> int:
        try:
            response = self.http.post(
                self._url("/scan"),
                json={"qrcode": token},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DispatchFailed(f"Controller unreachable: {exc}")

        if 200 <= response.status_code < 300:
            return response.status_code
        # The firmware answers the deny token with 403 once it has locked.
        if token == self.deny_token and response.status_code == 403:
            return response.status_code
        raise DispatchFailed(
            f"Controller returned HTTP {response.status_code}",
            http_status=response.status_code,
        )

    def status(self) -> dict[str, Any]:
        """Opportunistic GET /status health check."""
        if not self.configured:
            return {"reachable": False, "detail": "Controller host is not configured."}
        try:
            response = self.http.get(self._url("/status"), timeout=self.timeout)
        except requests.RequestException as exc:
            return {"reachable": False, "detail": str(exc)}

        body: Any = None
        try:
            body = response.json()
        except ValueError:
            body = response.text
        return {
            "reachable": 200 <= response.status_code < 300,
            "http_status": response.status_code,
            "body": body,
        }
