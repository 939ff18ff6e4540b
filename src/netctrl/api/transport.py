"""HTTP transport for the controller API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

import requests

logger = logging.getLogger(__name__)

API_PATH = "/v1/api"
DEFAULT_TIMEOUT = 30.0


class ControllerError(RuntimeError):
    """Base exception for controller client errors."""


class APIError(ControllerError):
    """Raised when the controller rejects a call."""

    def __init__(self, reason: str, action: str | None = None) -> None:
        self.reason = reason
        self.action = action
        super().__init__(reason)


class NotFoundError(ControllerError):
    """Raised when a looked-up resource does not exist on the controller."""


class TransportError(ControllerError):
    """Raised when a request cannot be delivered or its response decoded."""


ResponseCheck = Callable[[Mapping[str, Any]], None]


def basic_check(payload: Mapping[str, Any]) -> None:
    """Accept a ``{"return": ..., "reason": ...}`` envelope or raise ``APIError``."""

    if payload.get("return") is True:
        return
    raise APIError(str(payload.get("reason") or "controller returned no reason"))


class Transport(Protocol):
    """Request executor used by the API clients."""

    cid: str

    def post(
        self,
        action: str,
        params: Mapping[str, Any],
        check: ResponseCheck = basic_check,
        files: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]: ...

    def get(
        self, action: str, params: Mapping[str, Any], check: ResponseCheck = basic_check
    ) -> dict[str, Any]: ...


@dataclass(slots=True)
class ControllerSession:
    """Session against one controller.

    ``login`` establishes the ``CID`` once; clients read it for every call.
    """

    url: str
    username: str
    password: str
    verify_tls: bool = True
    timeout: float = DEFAULT_TIMEOUT
    cid: str = ""
    http: requests.Session = field(default_factory=requests.Session)

    @property
    def endpoint(self) -> str:
        return self.url.rstrip("/") + API_PATH

    def login(self) -> str:
        """Authenticate and store the session token."""

        logger.debug("login controller=%s username=%s", self.url, self.username)
        payload = self._request(
            "POST",
            "login",
            data={"action": "login", "username": self.username, "password": self.password},
        )
        basic_check(payload)

        cid = payload.get("CID")
        if not cid:
            raise APIError("login response did not contain a CID", action="login")
        self.cid = str(cid)
        logger.info("controller session established controller=%s", self.url)
        return self.cid

    def post(
        self,
        action: str,
        params: Mapping[str, Any],
        check: ResponseCheck = basic_check,
        files: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.debug("POST action=%s", action)
        payload = self._request("POST", action, data=dict(params), files=files)
        self._check(action, payload, check)
        return payload

    def get(
        self, action: str, params: Mapping[str, Any], check: ResponseCheck = basic_check
    ) -> dict[str, Any]:
        logger.debug("GET action=%s", action)
        payload = self._request("GET", action, params=dict(params))
        self._check(action, payload, check)
        return payload

    def close(self) -> None:
        self.http.close()

    def _check(self, action: str, payload: Mapping[str, Any], check: ResponseCheck) -> None:
        try:
            check(payload)
        except APIError as exc:
            if exc.action is None:
                exc.action = action
            logger.debug("action=%s rejected reason=\"%s\"", action, exc.reason)
            raise

    def _request(self, method: str, action: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.http.request(
                method,
                self.endpoint,
                timeout=self.timeout,
                verify=self.verify_tls,
                **kwargs,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TransportError(f"{method} {action} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"{method} {action} returned a non-JSON response") from exc

        if not isinstance(payload, dict):
            raise TransportError(f"{method} {action} returned an unexpected payload type")
        return payload
