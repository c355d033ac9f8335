import threading
import time

import pytest
import requests

from hlskit.models import DownloadSettings


class FakeResponse:
    def __init__(self, url, status_code=200, body=b"", delay=0.0, on_close=None):
        self.url = url
        self.status_code = status_code
        self.body = body if isinstance(body, bytes) else body.encode("utf-8")
        self.delay = delay
        self._on_close = on_close

    @property
    def text(self):
        return self.body.decode("utf-8")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)

    def iter_content(self, chunk_size=1):
        if self.delay:
            time.sleep(self.delay)
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def close(self):
        if self._on_close is not None:
            self._on_close()
            self._on_close = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class FakeSession:
    """
    In-memory stand-in for requests.Session.

    Each route holds a list of outcomes consumed one per request; the last
    outcome repeats. An outcome is bytes/str (200 body), an int (status code),
    an exception instance (raised) or a callable returning one of those.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.latency = {}
        self.headers = {}
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, url, *outcomes):
        self.routes[url] = list(outcomes)

    def count(self, url):
        return self.calls.count(url)

    def _release(self):
        with self._lock:
            self.in_flight -= 1

    def get(self, url, stream=False, timeout=None, verify=True, allow_redirects=True):
        with self._lock:
            self.calls.append(url)
            outcomes = self.routes.get(url)
            if not outcomes:
                outcome = 404
            elif len(outcomes) > 1:
                outcome = outcomes.pop(0)
            else:
                outcome = outcomes[0]

        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            status, body = outcome, b""
        else:
            status, body = 200, outcome

        on_close = None
        if stream:
            with self._lock:
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
            on_close = self._release
        return FakeResponse(url, status, body, delay=self.latency.get(url, 0.0), on_close=on_close)


def media_playlist(names, media_sequence=0, ended=True, duration=4.0, target=4):
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", f"#EXT-X-TARGETDURATION:{target}"]
    lines.append(f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}")
    for name in names:
        lines.append(f"#EXTINF:{duration},")
        lines.append(name)
    if ended:
        lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def settings():
    return DownloadSettings(
        max_concurrency=3,
        max_retries=2,
        retry_base_delay_ms=0,
        merger="concat",
    )
