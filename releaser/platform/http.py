"""HTTP client abstraction for package index queries.

This module provides:
- HttpClient: Protocol for the JSON reads the release engine needs
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Canned responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from releaser import __version__
from releaser.core.result import Err, Ok, Result
from releaser.core.structured import StrDict, as_str_dict

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
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


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP reads, injectable so tests never hit the network."""

    def get_json(self, url: str) -> Result[StrDict, HttpError]:
        """Fetch URL and parse the body as a JSON object."""
        ...


class RealHttpClient:
    """HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"releaser/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(self, url: str) -> Result[bytes, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str) -> Result[StrDict, HttpError]:
        result = self._request(url)
        if isinstance(result, Err):
            return result

        try:
            data_obj: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))

        data = as_str_dict(data_obj)
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(data)


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://pypi.org/pypi/demo/1.0.0/json", {"info": {}})
        assert isinstance(client.get_json("https://pypi.org/pypi/demo/1.0.0/json"), Ok)

    Unknown URLs answer with a 404 error.
    """

    def __init__(self) -> None:
        self._json_responses: dict[str, StrDict | HttpError] = {}
        self.calls: list[str] = []

    def set_json(self, url: str, response: StrDict | HttpError) -> None:
        self._json_responses[url] = response

    def get_json(self, url: str) -> Result[StrDict, HttpError]:
        self.calls.append(url)

        if url not in self._json_responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self._json_responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
