"""HTTP client for the panier server with retry and jittered backoff."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

RETRYABLE_STATUS = {429, 502, 503, 504}


class ApiError(RuntimeError):
    """Raised when the server rejects a request or stays unreachable."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


@dataclass
class ClientConfig:
    base_url: str = "http://localhost:8000"
    max_retries: int = 3
    # Recipe analysis waits on several model calls.
    timeout: float = 180.0
    delay_range: tuple[float, float] = (0.5, 1.0)


class PanierClient:
    """Thin wrapper around httpx speaking the ``/v1`` JSON API."""

    def __init__(self, *, config: Optional[ClientConfig] = None, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config or ClientConfig()
        self._client = httpx.Client(
            base_url=self.config.base_url.rstrip("/") + "/v1",
            headers={"Accept": "application/json"},
            timeout=self.config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PanierClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, *exc: object) -> None:  # pragma: no cover - trivial
        self.close()

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def analyze_recipe(self, recipe: str, *, servings: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"recipe": recipe}
        if servings is not None:
            payload["servings"] = servings
        return self._request("POST", "/recipes/analyze", json=payload)

    def reprice(
        self,
        matches: list,
        *,
        servings: int,
        new_servings: Optional[int] = None,
        excluded_product_ids: Optional[list] = None,
    ) -> Dict[str, Any]:
        payload = {
            "matches": matches,
            "servings": servings,
            "newServings": new_servings,
            "excludedProductIds": excluded_product_ids or [],
        }
        return self._request("POST", "/shopping-list/reprice", json=payload)

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        attempt = 0
        last_exc: Optional[Exception] = None
        while attempt < self.config.max_retries:
            attempt += 1
            try:
                response = self._client.request(method, path, **kwargs)
            except httpx.TransportError as exc:
                last_exc = exc
                self._sleep_with_jitter(attempt)
                continue

            if response.status_code in RETRYABLE_STATUS and attempt < self.config.max_retries:
                last_exc = _api_error(response)
                self._sleep_with_jitter(attempt)
                continue
            if response.is_error:
                raise _api_error(response)
            return response.json()

        if isinstance(last_exc, ApiError):
            raise last_exc
        raise ApiError(f"{method} {path} failed after {attempt} attempts") from last_exc

    def _sleep_with_jitter(self, attempt: int) -> None:
        base = random.uniform(*self.config.delay_range)
        backoff = min(3.0, 0.5 * (attempt - 1))
        time.sleep(base + backoff)


def _api_error(response: httpx.Response) -> ApiError:
    detail: Any = response.text
    code = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail", detail)
        code = body.get("code")
    return ApiError(
        f"Server returned {response.status_code}: {detail}",
        status_code=response.status_code,
        code=code,
    )
