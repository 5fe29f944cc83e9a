"""api-cli executor - HTTP request execution."""

import logging
import time

import requests
from requests.structures import CaseInsensitiveDict

from api_cli.core import APP_NAME, VERSION

logger = logging.getLogger(__name__)

USER_AGENT = f"{APP_NAME}/{VERSION}"
REQUEST_TIMEOUT = 60  # seconds


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.reason: str = ""
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self.content: bytes = b""
        self.elapsed: float = 0.0  # seconds, dispatch to response headers
        self.error: str | None = None


def execute_request(
    prepared: requests.PreparedRequest,
    timeout: float = REQUEST_TIMEOUT,
) -> RequestResult:
    """Send a prepared request and return a structured result.

    - One short-lived session per call, no retries
    - Latency covers dispatch up to the response headers
    - The body is read fully afterwards
    - Never raises for transport failures - the error field is set instead
    """
    result = RequestResult()

    prepared = prepared.copy()
    prepared.headers.setdefault("User-Agent", USER_AGENT)

    logger.info("%s %s", prepared.method, prepared.url)
    try:
        with requests.Session() as session:
            start = time.monotonic()
            resp = session.send(prepared, timeout=timeout, stream=True, allow_redirects=True)
            result.elapsed = time.monotonic() - start

            result.status_code = resp.status_code
            result.reason = resp.reason or ""
            result.headers = resp.headers
            result.content = resp.content
    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"

    if result.error:
        logger.info("Request failed: %s", result.error)
    else:
        logger.info("%s in %.3fs", result.status_code, result.elapsed)
    return result
