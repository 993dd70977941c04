import io
import json
import threading
import time
from typing import Any, Dict, List, Optional, Union
import requests
from PIL import Image


def make_response(
    status: int = 200, body: Union[bytes, Any] = b"", url: str = "https://danbooru.donmai.us/"
) -> requests.Response:
    """Build a real requests.Response; non-bytes bodies are sent as JSON."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    if isinstance(body, bytes):
        response._content = body
    else:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    response.encoding = "utf-8"
    return response


def png_bytes(width: int, height: int, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeSession:
    """Stands in for requests.Session, replaying queued responses."""

    def __init__(self, responses: Optional[List[Union[requests.Response, Exception]]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}

    def queue(self, response: Union[requests.Response, Exception]) -> None:
        self.responses.append(response)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)


class SlowSession(FakeSession):
    """
    Thread-safe session that answers every request with the same body after
    a delay, recording how many requests overlapped.
    """

    def __init__(self, delay: float, body: Union[bytes, Any] = b"", status: int = 200):
        super().__init__()
        self.delay = delay
        self.body = body
        self.status = status
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    @property
    def urls(self) -> List[str]:
        with self._lock:
            return [call["url"] for call in self.calls]

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        with self._lock:
            self.calls.append({"method": method, "url": url, **kwargs})
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return make_response(self.status, self.body, url=url)
        finally:
            with self._lock:
                self.active -= 1
