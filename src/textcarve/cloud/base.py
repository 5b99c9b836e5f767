import os
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import SETTINGS
from ..core.logging import log


class CloudError(RuntimeError):
    """A cloud API call failed; the message carries the server's response text."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PipelineNotFoundError(CloudError):
    pass


def resolve_api_key(api_key: str | None = None) -> str:
    key = api_key or SETTINGS.TEXTCARVE_API_KEY or os.environ.get("TEXTCARVE_API_KEY")
    if not key:
        raise ValueError(
            "API key is required. Pass api_key or set the TEXTCARVE_API_KEY environment variable."
        )
    return key


class CloudClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = resolve_api_key(api_key)
        self.base_url = (base_url or SETTINGS.TEXTCARVE_BASE_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or SETTINGS.TEXTCARVE_TIMEOUT,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    # Only transport failures are retried; HTTP error statuses surface immediately
    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        wait=wait_exponential(min=1, max=30),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    def _send(self, method: str, path: str, payload: dict | None = None) -> httpx.Response:
        return self._client.request(method, path, json=payload)

    def request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        error_prefix: str = "Request failed",
    ) -> Any:
        """Send a JSON request and return the decoded body.

        Raises:
            CloudError: on any non-2xx response
        """
        r = self._send(method, path, payload)
        log.debug("cloud.request", method=method, path=path, status=r.status_code)
        if r.is_error:
            raise CloudError(f"{error_prefix}: {r.text}", status_code=r.status_code)
        if not r.content:
            return {}
        return r.json()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CloudClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
