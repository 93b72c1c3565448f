"""HTTP client for the fulfilment API.

All authentication handling lives in ``RefreshingTokenAuth``: it attaches
the bearer token, and on a 401 refreshes the token once and replays the
request once. A second 401, or a failed refresh, raises
``ReauthenticationRequired`` so the caller can force a fresh login.
Timeouts are never retried here; callers must re-read state first. A
transient failure (timeout or 503) during the refresh call itself is raised
as ``TransientApiError`` rather than ``ReauthenticationRequired``: the
session may still be valid.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
import logging
from typing import Any, Callable, Dict, Generator, List, Optional

import httpx


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ReauthenticationRequired(Exception):
    pass


class TransientApiError(Exception):
    pass


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, detail: Any = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.detail = detail
        super().__init__(f"{status_code} {code}: {message}")

    @property
    def retryable(self) -> bool:
        return self.code == "RETRYABLE_CONFLICT"


class TokenPair:
    def __init__(self, access_token: str, refresh_token: Optional[str] = None):
        self.access_token = access_token
        self.refresh_token = refresh_token


class RefreshingTokenAuth(httpx.Auth):
    requires_response_body = True

    def __init__(self, tokens: TokenPair, refresh: Callable[[TokenPair], TokenPair]):
        self.tokens = tokens
        self._refresh = refresh

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.tokens.access_token}"
        response = yield request
        if response.status_code != 401:
            return

        logger.info("Received 401 for %s %s, refreshing token", request.method, request.url.path)
        try:
            self.tokens = self._refresh(self.tokens)
        except (httpx.HTTPError, ApiError, KeyError) as exc:
            raise ReauthenticationRequired("Token refresh failed; login again.") from exc

        request.headers["Authorization"] = f"Bearer {self.tokens.access_token}"
        response = yield request
        if response.status_code == 401:
            raise ReauthenticationRequired("Session expired; login again.")


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _clean(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _json_default(value) for key, value in payload.items()}


class FulfilmentClient:
    def __init__(
        self,
        base_url: str,
        tokens: TokenPair,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self.auth = RefreshingTokenAuth(tokens, self._refresh_tokens)
        self._http = httpx.Client(base_url=base_url, auth=self.auth, timeout=timeout, transport=transport)

    @classmethod
    def login(cls, base_url: str, email: str, password: str, **kwargs) -> "FulfilmentClient":
        with httpx.Client(base_url=base_url, transport=kwargs.get("transport")) as http:
            response = http.post("/api/auth/login", json={"email": email, "password": password})
        body = _raise_for_error(response)
        return cls(base_url, TokenPair(body["access_token"], body.get("refresh_token")), **kwargs)

    def _refresh_tokens(self, tokens: TokenPair) -> TokenPair:
        if not tokens.refresh_token:
            raise ReauthenticationRequired("No refresh token available; login again.")
        # Separate client: the refresh call must not go through this auth flow.
        try:
            with httpx.Client(base_url=self._base_url, timeout=self._timeout, transport=self._transport) as http:
                response = http.post("/api/auth/refresh", json={"refresh_token": tokens.refresh_token})
        except httpx.TimeoutException as exc:
            raise TransientApiError("Token refresh timed out; retry later.") from exc
        body = _raise_for_error(response)
        return TokenPair(body["access_token"], body.get("refresh_token") or tokens.refresh_token)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FulfilmentClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientApiError(f"{method} {path} timed out; re-query state before retrying.") from exc
        return _raise_for_error(response)

    # Orders
    def create_order(self, header: Dict[str, Any], lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload = _clean(header)
        payload["lines"] = [_clean(line) for line in lines]
        return self._request("POST", "/api/blanket-orders", json=payload)

    def list_available_lines(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/blanket-orders/lines/available")

    # Releases
    def create_release(self, order_line_id: int, quantity, scheduled_date: date, notes: Optional[str] = None) -> Dict[str, Any]:
        payload = _clean(
            {
                "order_line_id": order_line_id,
                "quantity": quantity,
                "scheduled_delivery_date": scheduled_date,
                "notes": notes,
            }
        )
        return self._request("POST", "/api/releases", json=payload)

    def update_release_status(self, release_id: int, status: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/api/releases/{release_id}/status", json={"status": status})

    # Inventory
    def get_balance(self, item_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/inventory/{item_id}")

    def list_movements(self, item_id: Optional[int] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {key: value for key, value in {"item_id": item_id, "limit": limit}.items() if value is not None}
        return self._request("GET", "/api/inventory/movements", params=params)

    def deduct(self, item_id: int, quantity, reference_type: str, reference_id: Optional[int] = None) -> Dict[str, Any]:
        payload = _clean(
            {"item_id": item_id, "quantity": quantity, "reference_type": reference_type, "reference_id": reference_id}
        )
        return self._request("POST", "/api/inventory/deductions", json=payload)

    def adjust(self, item_id: int, direction: str, quantity, reason: str, **extra) -> Dict[str, Any]:
        payload = _clean({"item_id": item_id, "direction": direction, "quantity": quantity, "reason": reason, **extra})
        return self._request("POST", "/api/inventory/adjustments", json=payload)


def _raise_for_error(response: httpx.Response) -> Any:
    if response.status_code == 503:
        raise TransientApiError(response.text)
    if response.is_success:
        return response.json() if response.content else None

    try:
        body = response.json()
    except ValueError:
        body = response.text
    detail = body.get("detail") if isinstance(body, dict) else body
    if isinstance(detail, dict):
        raise ApiError(response.status_code, detail.get("code", "ERROR"), detail.get("message", ""), detail)
    raise ApiError(response.status_code, "HTTP_ERROR", str(detail), detail)
