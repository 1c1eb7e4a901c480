"""
Request dispatcher for the Geo API web services.

GeoApiContext turns (response shape, path, params) into a PendingResult
and resolves it on a bounded worker pool: acquire a rate-limit permit,
send, classify, and retry transient failures with jittered exponential
backoff until the per-request time budget runs out.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlencode

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
    stop_before_delay,
    wait_exponential_jitter,
)

from ..config.config_module import get_config
from ..config.logger_module import log_debug, log_error, log_info
from .geoapi_config import GeoApiConfig
from .geoapi_errors import (
    GeoApiError,
    LocalValidationError,
    RequestCancelledError,
    RetryableError,
    RetryExhaustedError,
    error_from_api_error,
)
from .geoapi_pending import PendingResult, PendingState
from .geoapi_rate_limiter import TokenBucketRateLimiter
from .geoapi_response import Failure, ResponseShape
from .geoapi_signing import sign_url
from .geoapi_transport import RequestsTransport, Transport

logger = logging.getLogger(__name__)

RESERVED_PARAMS = frozenset({"key", "client", "signature"})
_SECRET_PARAMS = re.compile(r"([?&](?:key|signature)=)[^&]*")


def redact_url(url: str) -> str:
    """Mask the API key and signature in a URL for logging."""
    return _SECRET_PARAMS.sub(r"\1REDACTED", url)


def pair_params(params: Sequence[Any]) -> List[Tuple[str, str]]:
    """
    Turn a flat name, value, name, value... sequence into ordered pairs.
    
    Raises:
        LocalValidationError: On an odd count, a non-string or empty name,
            a non-string value, a duplicate name, or a reserved name
    """
    if len(params) % 2 != 0:
        raise LocalValidationError(f"Params must be name/value pairs, got {len(params)} items")
    
    pairs: List[Tuple[str, str]] = []
    seen = set()
    for i in range(0, len(params), 2):
        name, value = params[i], params[i + 1]
        if not isinstance(name, str) or not name:
            raise LocalValidationError(f"Param name at position {i} must be a non-empty string")
        if not isinstance(value, str):
            raise LocalValidationError(f"Value for param '{name}' must be a string, got {type(value).__name__}")
        if name in seen:
            raise LocalValidationError(f"Duplicate param '{name}'")
        if name in RESERVED_PARAMS:
            raise LocalValidationError(f"Param '{name}' is set by the client and cannot be supplied")
        seen.add(name)
        pairs.append((name, value))
    return pairs


class GeoApiContext:
    """
    Shared entry point for all endpoint calls.
    
    One context owns one rate limiter, one transport and one worker pool;
    every request made through it shares them.
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 config: Optional[GeoApiConfig] = None,
                 transport: Optional[Transport] = None,
                 rate_limiter: Optional[TokenBucketRateLimiter] = None):
        """
        Initialize the context.
        
        Args:
            api_key: API key sent as `key`
            client_id: Enterprise client id sent as `client`
            client_secret: Enterprise shared secret used to sign URLs
            config: Dispatcher tuning (defaults to GeoApiConfig())
            transport: Object with send(url) -> bytes (defaults to RequestsTransport)
            rate_limiter: Limiter to share (defaults to one built from config)
        """
        if not api_key and not (client_id and client_secret):
            raise ValueError("Must provide an API key or an enterprise client id and secret")
        
        self._api_key = api_key
        self._client_id = client_id
        self._client_secret = client_secret
        self.config = config or GeoApiConfig()
        
        self._rate_limiter = rate_limiter or TokenBucketRateLimiter(
            queries_per_second=self.config.queries_per_second,
            timeout=self.config.rate_limit_timeout,
        )
        self._transport = transport or RequestsTransport(request_timeout=self.config.request_timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="geoapi",
        )
        self._closed = False
        
        log_info(
            f"GeoApiContext initialized (base_url={self.config.base_url}, "
            f"qps={self.config.queries_per_second}, workers={self.config.max_workers}, "
            f"signed={bool(client_id and client_secret)})"
        )

    @classmethod
    def from_config(cls, **kwargs) -> "GeoApiContext":
        """Build a context from GOOGLE_MAPS_* credentials and GEOAPI_* tuning in the environment."""
        kwargs.setdefault("api_key", get_config("GOOGLE_MAPS_API_KEY"))
        kwargs.setdefault("client_id", get_config("GOOGLE_MAPS_CLIENT_ID"))
        kwargs.setdefault("client_secret", get_config("GOOGLE_MAPS_CLIENT_SECRET"))
        kwargs.setdefault("config", GeoApiConfig.from_env())
        return cls(**kwargs)

    def __enter__(self) -> "GeoApiContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    @property
    def rate_limiter(self) -> TokenBucketRateLimiter:
        return self._rate_limiter

    def set_queries_per_second(self, queries_per_second: float) -> None:
        """Change the shared rate; applies to acquisitions made after the call."""
        self._rate_limiter.set_rate(queries_per_second)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting requests and release the worker pool."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()
        log_info("GeoApiContext shut down")

    # ---- request building ----

    def build_url(self, base_path: str, pairs: Sequence[Tuple[str, str]]) -> str:
        """
        Build the full request URL, appending credentials and, for
        enterprise credentials, the signature.
        
        Caller params keep their order and values; credentials come last.
        """
        query = list(pairs)
        if self._client_id and self._client_secret:
            query.append(("client", self._client_id))
        else:
            query.append(("key", self._api_key))
        
        path_and_query = f"{base_path}?{urlencode(query)}"
        if self._client_id and self._client_secret:
            path_and_query = sign_url(path_and_query, self._client_secret)
        
        return self.config.base_url + path_and_query

    # ---- dispatch ----

    def get(self, shape: ResponseShape, base_path: str, *params: str) -> PendingResult:
        """
        Dispatch a GET request.
        
        Args:
            shape: Expected response shape (SingularResponse / MultiResponse)
            base_path: Path beginning with "/", e.g. "/maps/api/elevation/json"
            *params: Flat name, value, name, value... strings
            
        Returns:
            PendingResult resolved in the background. Malformed params give
            an already-failed result and no network attempt is made.
        """
        pending: PendingResult = PendingResult(description=base_path)
        
        try:
            if not base_path.startswith("/"):
                raise LocalValidationError(f"base_path must start with '/', got {base_path!r}")
            pairs = pair_params(params)
            url = self.build_url(base_path, pairs)
        except LocalValidationError as e:
            log_error(f"Rejected request to {base_path}: {e}")
            pending._fail(e)
            return pending
        except ValueError as e:
            log_error(f"Could not sign request to {base_path}: {e}")
            pending._fail(LocalValidationError(str(e)))
            return pending
        
        if self._closed:
            pending._fail(GeoApiError("GeoApiContext has been shut down"))
            return pending
        
        log_debug(f"Dispatching {redact_url(url)}")
        try:
            self._executor.submit(self._execute, pending, shape, url)
        except RuntimeError:
            # shutdown() raced with this call
            pending._fail(GeoApiError("GeoApiContext has been shut down"))
        return pending

    def get_with_params(self, shape: ResponseShape, base_path: str,
                        params: Mapping[str, str]) -> PendingResult:
        """Same as `get`, taking an ordered mapping of params."""
        flat: List[str] = []
        for name, value in params.items():
            flat.extend((name, value))
        return self.get(shape, base_path, *flat)

    def _retrying(self, pending: PendingResult) -> Retrying:
        c = self.config
        # Stop when the upcoming backoff would end past the budget
        stops = [
            stop_before_delay(c.retry_timeout),
            lambda retry_state: pending.cancel_requested(),
        ]
        if c.max_retries is not None:
            stops.append(stop_after_attempt(c.max_retries + 1))
        
        def backoff_sleep(seconds: float) -> None:
            pending._mark(PendingState.RETRY_WAIT)
            if pending.wait_for_cancel(seconds):
                raise RequestCancelledError(f"Request {pending.description!r} was cancelled")
        
        return Retrying(
            stop=stop_any(*stops),
            wait=wait_exponential_jitter(
                multiplier=c.retry_initial_delay,
                max=c.retry_max_delay,
                exp_base=c.retry_multiplier,
                jitter=c.retry_jitter,
            ),
            retry=retry_if_exception(lambda e: isinstance(e, RetryableError)),
            sleep=backoff_sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )

    def _execute(self, pending: PendingResult, shape: ResponseShape, url: str) -> None:
        """Worker entry point: run the attempt loop and complete `pending` exactly once."""
        try:
            result = self._retrying(pending)(self._attempt, pending, shape, url)
        except RetryError as e:
            if pending.cancel_requested():
                pending.cancel()
                return
            cause = e.last_attempt.exception()
            log_error(f"Giving up on {redact_url(url)} after {pending.attempts} attempt(s): {cause}")
            pending._fail(RetryExhaustedError(cause, pending.attempts))
        except RequestCancelledError:
            log_info(f"Request {pending.description!r} cancelled")
            pending.cancel()
        except GeoApiError as e:
            log_error(f"Request {redact_url(url)} failed: {e}")
            pending._fail(e)
        except Exception as e:
            log_error(f"Unexpected error for {redact_url(url)}: {e!r}")
            pending._fail(GeoApiError(f"Unexpected error: {e!r}"))
        else:
            pending._complete(result)

    def _attempt(self, pending: PendingResult, shape: ResponseShape, url: str) -> Any:
        """One permit + send + classify cycle. Raises on any non-success outcome."""
        if pending.cancel_requested():
            raise RequestCancelledError(f"Request {pending.description!r} was cancelled")
        
        self._rate_limiter.acquire(wait_for_cancel=pending.wait_for_cancel)

        if pending.cancel_requested():
            raise RequestCancelledError(f"Request {pending.description!r} was cancelled")
        
        pending._mark(PendingState.SENT)
        body = self._transport.send(url)
        
        # An in-flight call cannot be aborted; its result is dropped instead
        if pending.cancel_requested():
            raise RequestCancelledError(f"Request {pending.description!r} was cancelled")
        
        classified = shape.parse(body)
        if isinstance(classified, Failure):
            raise error_from_api_error(classified.error, self.config.retry_over_query_limit)
        return classified.result
