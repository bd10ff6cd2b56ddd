"""Async HTTP client for the banking API.

`BankApiClient` wraps `httpx.AsyncClient` the way a browser frontend
talks to the API:

- identical requests (same method, url, params and body) never run
  twice at once; starting a new one cancels the one still in flight,
  whose caller gets `RequestCancelled`
- error responses never raise; they come back as a failed envelope
  `{success: False, message, data: None, errors, originalStatus}`
- a 401 drops the stored token and calls `on_unauthorized`; 403 and 5xx
  call `on_error` with a user-facing message
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx

logger = logging.getLogger("onlinebank.client")

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 8.0

CLIENT_ERROR_MESSAGES = {
    400: "Bad request. Please check your input.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    409: "Conflict occurred.",
    422: "Validation failed.",
    500: "Internal server error.",
    502: "Bad gateway.",
    503: "Service unavailable.",
}
SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."
ACCESS_DENIED_MESSAGE = "Access denied. You do not have permission to perform this action."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."
CONNECTION_ERROR_MESSAGE = "Unable to connect to server. Please check your internet connection."


class RequestCancelled(Exception):
    """Raised to the caller of a request replaced by an identical newer one."""


def error_message(status: int) -> str:
    return CLIENT_ERROR_MESSAGES.get(status, "An error occurred.")


def request_key(method: str, url: str, params=None, body=None) -> str:
    p = json.dumps(params, sort_keys=True, default=str) if params else ""
    if isinstance(body, (str, bytes)):
        d = body.decode() if isinstance(body, bytes) else body
    else:
        d = json.dumps(body, sort_keys=True, default=str) if body else ""
    return "|".join([method.lower(), url, p, d])


class BankApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable] = None,
        on_error: Optional[Callable] = None,
    ):
        self.token = token
        self.on_unauthorized = on_unauthorized
        self.on_error = on_error
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._pending: Dict[str, asyncio.Task] = {}
        self._superseded = set()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()
        await self.client.aclose()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _notify(self, hook: Optional[Callable], *args) -> None:
        if hook is None:
            return
        result = hook(*args)
        if inspect.isawaitable(result):
            await result

    async def request(self, method: str, url: str, params: Optional[dict] = None, json_body: Any = None, data: Optional[dict] = None) -> dict:
        """Send a request and return the response envelope."""
        key = request_key(method, url, params, json_body if json_body is not None else data)
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            logger.debug("cancelling duplicate request %s", key)
            self._superseded.add(previous)
            previous.cancel()

        task = asyncio.ensure_future(self._send(method, url, params, json_body, data))
        self._pending[key] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                self._superseded.discard(task)
                raise RequestCancelled(f"{method.upper()} {url} was replaced by a newer identical request")
            raise
        finally:
            if self._pending.get(key) is task:
                del self._pending[key]

    async def _send(self, method, url, params, json_body, data) -> dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self.client.request(method, url, params=params, json=json_body, data=data, headers=headers)
        except (httpx.ConnectError, httpx.NetworkError):
            await self._notify(self.on_error, CONNECTION_ERROR_MESSAGE)
            raise
        return await self._handle(response)

    async def _handle(self, response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {} if response.status_code >= 400 else {"success": True, "message": None, "data": body, "errors": None}

        # The API reports failures inside a 200 envelope; treat those like real statuses.
        status = response.status_code
        if status < 400 and body.get("success") is False and isinstance(body.get("originalStatus"), int):
            status = body["originalStatus"]
        if status < 400:
            return body

        if status == 401:
            self.token = None
            await self._notify(self.on_unauthorized, SESSION_EXPIRED_MESSAGE)
        elif status == 403:
            await self._notify(self.on_error, ACCESS_DENIED_MESSAGE)
        elif status >= 500:
            await self._notify(self.on_error, SERVER_ERROR_MESSAGE)

        return {
            "success": False,
            "message": body.get("message") or error_message(status),
            "data": None,
            "errors": body.get("errors") or None,
            "originalStatus": status,
        }

    async def get(self, url: str, params: Optional[dict] = None) -> dict:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, json_body: Any = None, params: Optional[dict] = None) -> dict:
        return await self.request("POST", url, params=params, json_body=json_body)

    async def put(self, url: str, json_body: Any = None) -> dict:
        return await self.request("PUT", url, json_body=json_body)

    async def delete(self, url: str) -> dict:
        return await self.request("DELETE", url)

    async def login(self, email: str, password: str) -> dict:
        """Log in with the form endpoint and keep the returned token."""
        result = await self.request("POST", "/auth/login", data={"email": email, "password": password})
        if result.get("success") and isinstance(result.get("data"), dict):
            self.token = result["data"].get("token")
        return result

    def logout(self) -> None:
        self.token = None

    async def my_accounts(self) -> dict:
        return await self.get("/account/my-accounts")

    async def dashboard_summary(self) -> dict:
        return await self.get("/transaction/dashboard-summary")

    async def deposit(self, payload: dict) -> dict:
        return await self.post("/transaction/deposit", payload)

    async def withdraw(self, payload: dict) -> dict:
        return await self.post("/transaction/withdraw", payload)

    async def transfer(self, payload: dict) -> dict:
        return await self.post("/transaction/transfer", payload)
