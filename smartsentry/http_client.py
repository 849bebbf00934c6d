"""SmartSentry — Resilient async HTTP client

Builds requests against the configured API base URL, attaches the bearer
token, enforces a hard per-attempt timeout and retries transport failures
with exponential backoff. Responses are classified into the ApiError
taxonomy (see errors.py).
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from smartsentry.config import API_BASE_URL, DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT
from smartsentry.errors import (
    AccessDenied, AuthExpired, NetworkError, NoCredential,
    RequestFailed, RequestTimeout,
)
from smartsentry.retry import RetryPolicy, with_retry
from smartsentry.token_store import TokenStore

logger = logging.getLogger("smartsentry.http")

EventHook = Callable[[str, dict], None]


class HttpClient:
    def __init__(
        self,
        token_store: TokenStore,
        base_url: str = API_BASE_URL,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        on_event: Optional[EventHook] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self._client = client or httpx.AsyncClient(transport=transport)
        self._retry_policy = retry_policy or RetryPolicy()
        self._on_event = on_event

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _emit(self, event: str, **info):
        if self._on_event is None:
            return
        try:
            self._on_event(event, info)
        except Exception as e:
            logger.warning(f"Event hook failed for {event}: {e}")

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        *,
        requires_auth: bool = True,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
        params: Optional[dict] = None,
        files: Optional[list | dict] = None,
    ) -> Any:
        """Perform one logical API call and return the parsed response body.

        Raises NoCredential, AuthExpired, AccessDenied and RequestFailed without
        retrying. NetworkError / RequestTimeout are retried up to
        ``max_attempts`` times and re-raised once attempts are exhausted.
        """
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}

        if requires_auth:
            token = await self.token_store.load()
            if not token:
                self._emit("no_credential", method=method, path=path)
                raise NoCredential()
            headers["Authorization"] = f"Bearer {token}"

        send_kwargs: dict[str, Any] = {"params": params}
        if files is not None:
            # Multipart: the transport sets Content-Type with its boundary
            send_kwargs["files"] = files
            if body is not None:
                send_kwargs["data"] = body
        else:
            headers["Content-Type"] = "application/json"
            if body is not None:
                send_kwargs["json"] = body

        async def attempt(n: int) -> Any:
            response = await self._send(method, url, headers, timeout, n, **send_kwargs)
            return await self._handle_response(method, path, response)

        policy = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=self._retry_policy.base_delay,
            factor=self._retry_policy.factor,
            sleep=self._retry_policy.sleep,
        )

        def on_retry(n: int, exc: BaseException, delay: float):
            self._emit("retry", method=method, path=path, attempt=n, error=str(exc), delay=delay)

        try:
            return await with_retry(attempt, policy, on_retry=on_retry)
        except NetworkError as e:
            logger.warning(f"{method} {path} failed after {policy.max_attempts} attempt(s): {e}")
            self._emit("network_error", method=method, path=path, error=str(e))
            raise

    async def _send(self, method: str, url: str, headers: dict, timeout: float,
                    attempt: int, **kwargs) -> httpx.Response:
        try:
            return await asyncio.wait_for(
                self._client.request(method, url, headers=headers, timeout=timeout, **kwargs),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.info(f"{method} {url} timed out after {timeout:.0f}s (attempt {attempt})")
            raise RequestTimeout(f"Request timed out after {timeout:.0f}s") from e
        except httpx.RequestError as e:
            logger.info(f"{method} {url} request error (attempt {attempt}): {e}")
            raise NetworkError(f"Network error: {str(e) or type(e).__name__}") from e

    async def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        status = response.status_code

        if status == 401:
            await self.token_store.clear()
            logger.warning(f"{method} {path} rejected with 401; credential cleared")
            self._emit("auth_expired", method=method, path=path)
            raise AuthExpired()

        if status == 403:
            self._emit("access_denied", method=method, path=path)
            raise AccessDenied()

        if not response.is_success:
            message = _error_message(response)
            logger.warning(f"{method} {path} failed with {status}: {message}")
            self._emit("request_failed", method=method, path=path, status=status, message=message)
            raise RequestFailed(message, status=status)

        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.warning(f"{method} {path} returned {status} with an unreadable JSON body")
                self._emit("request_failed", method=method, path=path, status=status, message="Invalid JSON response")
                raise RequestFailed("Invalid JSON response from server", status=status) from e
        return response.text


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message for a failed response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for field in ("message", "detail", "error"):
            value = data.get(field)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    if text:
        return text
    return response.reason_phrase or f"HTTP {response.status_code}"
