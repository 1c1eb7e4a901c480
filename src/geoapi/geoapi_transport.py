"""
HTTP transport for the dispatcher.

The dispatcher only needs `send(url) -> bytes`; anything satisfying the
Transport protocol can be injected. RequestsTransport is the default.
"""

from typing import Optional, Protocol

import requests

from ..config.logger_module import log_debug, log_error
from .geoapi_errors import HttpError, RequestFailedError, TransportError

RETRIABLE_HTTP_STATUSES = {500, 503, 504}


class Transport(Protocol):
    def send(self, url: str) -> bytes: ...


class RequestsTransport:
    """Sends GET requests through a pooled requests.Session."""

    USER_AGENT = "GeoApiPythonClient/1.0"

    def __init__(self, request_timeout: float = 30.0, session: Optional[requests.Session] = None):
        """
        Args:
            request_timeout: HTTP timeout in seconds (connect and read)
            session: Optional preconfigured session
        """
        self.request_timeout = request_timeout
        self._session = session or requests.Session()
        self._session.headers.update({'User-Agent': self.USER_AGENT})

    def send(self, url: str) -> bytes:
        """
        Fetch `url` and return the raw body.
        
        Raises:
            TransportError: On timeouts, connection errors, or HTTP 500/503/504
            RequestFailedError: On other requests errors (invalid URL, too many redirects)
            HttpError: On other non-200 statuses
        """
        try:
            response = self._session.get(url, timeout=self.request_timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timeout: {e}")
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection error: {e}")
        except requests.exceptions.ChunkedEncodingError as e:
            raise TransportError(f"Connection broken mid-response: {e}")
        except requests.exceptions.RequestException as e:
            log_error(f"Request cannot be sent: {e}")
            raise RequestFailedError(f"Request failed: {e}")
        
        if response.status_code in RETRIABLE_HTTP_STATUSES:
            log_debug(f"HTTP {response.status_code}, will be retried")
            raise TransportError(f"HTTP {response.status_code}", http_status=response.status_code)
        if response.status_code != 200:
            log_error(f"HTTP {response.status_code}: {response.text[:200]}")
            raise HttpError(response.status_code)
        
        return response.content

    def close(self) -> None:
        self._session.close()
