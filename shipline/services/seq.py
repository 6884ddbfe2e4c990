"""Seq events API client used to verify end-to-end ingestion.

This module provides:
- SeqClient: Protocol for querying events (injectable for tests)
- RealSeqClient: urllib implementation
- MockSeqClient: scripted implementation for tests
"""

from __future__ import annotations

import json
import urllib.parse
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from shipline.core.result import Err, Ok, Result
from shipline.core.structured import ObjList, as_obj_list
from shipline.services.errors import VerificationFailure

__all__ = [
    "HttpError",
    "MockSeqClient",
    "RealSeqClient",
    "SeqClient",
    "events_url",
    "verify_ingestion",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


def events_url(base_url: str, *, count: int = 30, filter: str | None = None) -> str:
    """Events endpoint with the ``render`` flag set; Seq answers with a JSON array."""
    url = f"{base_url.rstrip('/')}/api/events?render&count={count}"
    if filter:
        url += "&filter=" + urllib.parse.quote(filter)
    return url


@runtime_checkable
class SeqClient(Protocol):
    def get_events(self, url: str) -> Result[ObjList, HttpError]:
        """Fetch the URL and parse the body as a JSON array."""
        ...


class RealSeqClient:
    def __init__(self, *, timeout: float = 10.0, api_key: str | None = None) -> None:
        self.timeout = timeout
        self.api_key = api_key

    def get_events(self, url: str) -> Result[ObjList, HttpError]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-Seq-ApiKey"] = self.api_key

        try:
            req = urllib.request.Request(url, headers=headers)
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body: bytes = response.read()
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

        try:
            data: object = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))

        events = as_obj_list(data)
        if events is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON array"))
        return Ok(events)


class MockSeqClient:
    """Scripted Seq client.

    Each call pops the next queued response; once the queue is empty the
    fallback response is returned.

    Usage:
        client = MockSeqClient(fallback=[{"Id": "event-1"}])
        client.queue([])  # first query sees nothing
    """

    def __init__(self, fallback: ObjList | HttpError | None = None) -> None:
        self._queue: list[ObjList | HttpError] = []
        self._fallback: ObjList | HttpError = fallback if fallback is not None else []
        self.calls: list[str] = []

    def queue(self, response: ObjList | HttpError) -> None:
        self._queue.append(response)

    def get_events(self, url: str) -> Result[ObjList, HttpError]:
        self.calls.append(url)
        response = self._queue.pop(0) if self._queue else self._fallback
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)


def verify_ingestion(
    client: SeqClient, base_url: str, *, filter: str | None = None
) -> Result[int, VerificationFailure]:
    """Succeed with the event count when Seq holds at least one matching event."""
    url = events_url(base_url, filter=filter)
    result = client.get_events(url)
    if isinstance(result, Err):
        return Err(VerificationFailure(url=url, reason=str(result.error)))
    if not result.value:
        return Err(VerificationFailure(url=url, reason="no events ingested"))
    return Ok(len(result.value))
