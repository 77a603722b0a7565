import logging
import os
import time
from typing import Optional

import requests

from .exceptions import DataLoadError

TIMEOUT = float(os.environ.get("VOLCANOML_HTTP_TIMEOUT", "30"))
RETRIES = int(os.environ.get("VOLCANOML_HTTP_RETRIES", "3"))
BACKOFF = float(os.environ.get("VOLCANOML_HTTP_BACKOFF", "1.0"))

log = logging.getLogger(__name__)

_session = requests.Session()


def _is_transient(exc: requests.RequestException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    resp = getattr(exc, "response", None)
    return resp is not None and resp.status_code >= 500


def get_bytes(url: str, *, retries: int = RETRIES, timeout: float = TIMEOUT,
              session: Optional[requests.Session] = None) -> bytes:
    """
    Fetch `url` and return the body. Connection errors, timeouts and 5xx
    responses are retried up to `retries` extra times with linear backoff;
    anything else fails immediately.
    """
    sess = session or _session
    attempts = max(0, retries) + 1
    for attempt in range(1, attempts + 1):
        try:
            resp = sess.get(url, timeout=timeout)
            resp.raise_for_status()
            return resp.content
        except requests.RequestException as e:
            if not _is_transient(e) or attempt == attempts:
                raise DataLoadError(url, str(e)) from e
            log.warning("Fetch attempt %d/%d for %s failed: %s", attempt, attempts, url, e)
            time.sleep(BACKOFF * attempt)
    raise DataLoadError(url, "no attempts made")  # pragma: no cover


def is_url(source: str) -> bool:
    return str(source).lower().startswith(("http://", "https://"))
