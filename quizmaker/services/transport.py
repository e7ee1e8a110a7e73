"""HTTP plumbing shared by the quiz API clients."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

FileField = tuple[str, bytes, str]


class TransportError(Exception):
  """A request that did not produce a successful JSON response."""

  def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None, is_network_error: bool = False) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.payload = payload
    self.is_network_error = is_network_error


class Transport(Protocol):
  """Request/response plumbing the API clients depend on."""

  async def request(self, method: str, path: str, *, json: Any = None, data: dict[str, str] | None = None, files: dict[str, FileField] | None = None) -> Any:
    """Send one request and return the decoded JSON body (None when empty)."""


class HttpxTransport:
  """`httpx.AsyncClient` backed transport for the quiz API."""

  def __init__(self, base_url: str, *, token: str | None = None, timeout_seconds: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
    headers = {"accept": "application/json"}
    if token:
      headers["authorization"] = f"Bearer {token}"
    # Never trust environment proxy variables for API calls.
    self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout_seconds, trust_env=False)

  async def request(self, method: str, path: str, *, json: Any = None, data: dict[str, str] | None = None, files: dict[str, FileField] | None = None) -> Any:
    try:
      response = await self._client.request(method, path, json=json, data=data, files=files)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.warning("Quiz API %s %s returned %s", method, path, exc.response.status_code)
      raise TransportError(f"{method} {path} returned {exc.response.status_code}", status_code=exc.response.status_code, payload=_decode_body(exc.response)) from exc
    except httpx.RequestError as exc:
      logger.error("Quiz API %s %s failed: %s", method, path, exc)
      raise TransportError(str(exc) or type(exc).__name__, is_network_error=True) from exc

    return _decode_body(response)

  async def aclose(self) -> None:
    await self._client.aclose()

  async def __aenter__(self) -> HttpxTransport:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()


def _decode_body(response: httpx.Response) -> Any:
  """Decode a JSON body, falling back to the raw text for non-JSON errors."""
  if not response.content:
    return None
  try:
    return response.json()
  except ValueError:
    return response.text
