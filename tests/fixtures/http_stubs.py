"""
Recording stand-in for ``requests.Session``.

Responses are queued per (method, url) and returned in order; every call is
recorded so tests can assert on what was sent.
"""

import json
from collections import defaultdict, deque
from typing import Any, Dict, List, Optional, Union

import requests


def make_response(status_code: int = 200, body: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a real requests.Response with the given status and body."""
    response = requests.Response()
    response.status_code = status_code
    if text is None:
        text = json.dumps(body if body is not None else {})
        response.headers["Content-Type"] = "application/json"
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    return response


class StubHttpSession:
    """Minimal requests.Session replacement used by adapters and the mirror."""

    def __init__(self):
        self._queued: Dict[tuple, deque] = defaultdict(deque)
        self.calls: List[Dict[str, Any]] = []

    def queue(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        body: Any = None,
        text: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        item: Union[requests.Response, Exception] = error or make_response(status_code, body, text)
        self._queued[(method.upper(), url)].append(item)

    def calls_to(self, url: str, method: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            c for c in self.calls if c["url"] == url and (method is None or c["method"] == method)
        ]

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        method = method.upper()
        self.calls.append({"method": method, "url": url, **kwargs})
        pending = self._queued.get((method, url))
        if not pending:
            raise AssertionError(f"Unexpected {method} {url}")
        item = pending.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def patch(self, url: str, **kwargs) -> requests.Response:
        return self.request("PATCH", url, **kwargs)
