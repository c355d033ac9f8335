"""
HTTP helpers for HLSKit.

Builds the shared requests session and wraps playlist and segment fetches so
that failures come back as FetchError (permanent) or TransientFetchError
(worth retrying).
"""

import logging
import os
from typing import Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from .exceptions import FetchError, TransientFetchError
from .models import DownloadSettings
from .utils import CancellationToken

logger = logging.getLogger(__name__)

# Server errors and the edge-cache (Cloudflare) statuses that usually clear on retry.
TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504, 520, 522, 524})

CHUNK_SIZE = 64 * 1024


def create_session(settings: Optional[DownloadSettings] = None) -> requests.Session:
    """
    Create a requests session for playlist and segment retrieval.

    Args:
        settings: Download settings (user agent, extra headers, pool size)

    Returns:
        Configured requests.Session
    """
    settings = settings or DownloadSettings()
    session = requests.Session()
    session.headers.update({'User-Agent': settings.user_agent})
    if settings.headers:
        session.headers.update(settings.headers)

    # Retries are handled per segment by the downloader, not by urllib3.
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=max(settings.max_concurrency, 10))
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


def _check_status(response, url: str) -> None:
    status = response.status_code
    if status in TRANSIENT_STATUS_CODES:
        raise TransientFetchError(f"HTTP {status} for {url}", status_code=status)
    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise FetchError(f"HTTP {status} for {url}", status_code=status) from e


def _discard(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.debug(f"Could not remove partial file {path}: {e}")


def fetch_text(
    session: requests.Session,
    url: str,
    timeout: float = 15.0,
    verify_ssl: bool = True,
) -> Tuple[str, str]:
    """
    Fetch a text resource (playlist).

    Args:
        session: requests session
        url: URL to fetch
        timeout: Request timeout in seconds
        verify_ssl: Whether to verify SSL certificates

    Returns:
        Tuple of (body text, final URL after redirects)

    Raises:
        TransientFetchError: On connection problems or transient HTTP status
        FetchError: On any other HTTP failure
    """
    try:
        response = session.get(url, timeout=timeout, verify=verify_ssl, allow_redirects=True)
        _check_status(response, url)
        return response.text, (response.url or url)
    except FetchError:
        raise
    except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
        raise TransientFetchError(f"Request to {url} failed: {e}") from e
    except requests.RequestException as e:
        raise FetchError(f"Request to {url} failed: {e}") from e


def download_to_file(
    session: requests.Session,
    url: str,
    path: str,
    timeout: float = 30.0,
    verify_ssl: bool = True,
    token: Optional[CancellationToken] = None,
) -> int:
    """
    Stream a URL into a local file.

    The request timeout applies to this fetch alone. Cancellation is checked
    between chunks; a partially written file is removed on any failure.

    Args:
        session: requests session
        url: Segment URL
        path: Destination file path
        timeout: Per-request timeout in seconds
        verify_ssl: Whether to verify SSL certificates
        token: Optional cancellation token

    Returns:
        Number of bytes written

    Raises:
        OperationCancelled: If the token is cancelled mid-transfer
        TransientFetchError: On connection/IO problems or transient HTTP status
        FetchError: On any other HTTP failure
    """
    written = 0
    try:
        with session.get(url, stream=True, timeout=timeout, verify=verify_ssl) as response:
            _check_status(response, url)
            with open(path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if token is not None:
                        token.raise_if_cancelled()
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        return written
    except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
        _discard(path)
        raise TransientFetchError(f"Request to {url} failed: {e}") from e
    except requests.RequestException as e:
        _discard(path)
        raise FetchError(f"Request to {url} failed: {e}") from e
    except OSError as e:
        _discard(path)
        raise TransientFetchError(f"I/O error while saving {url}: {e}") from e
    except BaseException:
        _discard(path)
        raise
