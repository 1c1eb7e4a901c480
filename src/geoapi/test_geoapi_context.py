"""
Test suite for the request dispatcher.

A fake transport replays scripted bodies and errors so that retry,
classification, cancellation and signing can be exercised without
touching the network.
"""

import json
import logging
import threading
import time
from contextlib import ExitStack
from unittest.mock import MagicMock, patch
import pytest
from pydantic import BaseModel

from .geoapi_config import GeoApiConfig
from .geoapi_context import GeoApiContext, pair_params, redact_url
from .geoapi_errors import (
    ApiStatus,
    DecodeError,
    GeoApiError,
    LocalValidationError,
    RateLimitedError,
    RemoteApplicationError,
    RequestCancelledError,
    RequestFailedError,
    RetryExhaustedError,
    TransportError,
)
from .geoapi_pending import PendingState
from .geoapi_rate_limiter import TokenBucketRateLimiter
from .geoapi_response import MultiResponse, SingularResponse
from .geoapi_signing import sign_hmac

_LOG_HELPERS = [
    'src.geoapi.geoapi_context.log_info',
    'src.geoapi.geoapi_context.log_error',
    'src.geoapi.geoapi_context.log_debug',
    'src.geoapi.geoapi_rate_limiter.log_info',
    'src.geoapi.geoapi_rate_limiter.log_debug',
    'src.geoapi.geoapi_pending.log_error',
]

PATH = "/maps/api/elevation/json"


# ==================== FIXTURES ====================

@pytest.fixture(autouse=True)
def mock_logging():
    """Mock the log helpers to prevent actual logging during tests."""
    with ExitStack() as stack:
        yield {target: stack.enter_context(patch(target)) for target in _LOG_HELPERS}


class Elevation(BaseModel):
    elevation: float


def body(status="OK", results=None, error_message=None) -> bytes:
    payload = {"status": status}
    if results is not None:
        payload["results"] = results
    if error_message is not None:
        payload["error_message"] = error_message
    return json.dumps(payload).encode()


OK_BODY = body(results=[{"elevation": 1608.6}])


class FakeTransport:
    """Replays responses in order; the last one repeats. Exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.urls = []
        self._lock = threading.Lock()

    def send(self, url):
        with self._lock:
            self.urls.append(url)
            item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fast_config():
    return GeoApiConfig(
        queries_per_second=1000,
        retry_timeout=5.0,
        retry_initial_delay=0.01,
        retry_max_delay=0.05,
        retry_jitter=0.01,
        max_workers=4,
    )


@pytest.fixture
def make_context(fast_config):
    """Build contexts around a fake transport and shut them down afterwards."""
    contexts = []
    
    def factory(*responses, config=None, **kwargs):
        transport = FakeTransport(*responses)
        kwargs.setdefault("api_key", "AIzaTestKey")
        context = GeoApiContext(config=config or fast_config, transport=transport, **kwargs)
        contexts.append(context)
        return context, transport
    
    yield factory
    for context in contexts:
        context.shutdown()


def wait_for_state(pending, state, timeout=5.0):
    deadline = time.monotonic() + timeout
    while pending.state is not state:
        assert time.monotonic() < deadline, f"never reached {state}, stuck in {pending.state}"
        time.sleep(0.005)


# ==================== TEST CLASSES ====================

class TestParams:
    """Test param validation and URL helpers."""
    
    def test_pair_params(self):
        assert pair_params(("locations", "1,2", "samples", "3")) == [("locations", "1,2"), ("samples", "3")]
        assert pair_params(()) == []
    
    @pytest.mark.parametrize("params,message", [
        (("locations",), "name/value pairs"),
        (("a", "1", "a", "2"), "Duplicate param 'a'"),
        (("", "1"), "non-empty string"),
        (("samples", 3), "must be a string"),
        (("key", "mine"), "set by the client"),
        (("signature", "forged"), "set by the client"),
    ])
    def test_pair_params_rejects(self, params, message):
        with pytest.raises(LocalValidationError, match=message):
            pair_params(params)
    
    def test_redact_url(self):
        url = "https://maps.googleapis.com/x?locations=1%2C2&key=AIzaSecret"
        assert redact_url(url) == "https://maps.googleapis.com/x?locations=1%2C2&key=REDACTED"
        signed = "https://maps.googleapis.com/x?a=1&client=gme&signature=abc="
        assert redact_url(signed) == "https://maps.googleapis.com/x?a=1&client=gme&signature=REDACTED"


class TestContextSetup:
    """Test context construction and URL building."""
    
    def test_requires_credentials(self):
        with pytest.raises(ValueError, match="API key or an enterprise client id"):
            GeoApiContext(transport=FakeTransport(OK_BODY))
        with pytest.raises(ValueError):
            GeoApiContext(client_id="gme-test", transport=FakeTransport(OK_BODY))
    
    def test_build_url_with_api_key(self, make_context):
        context, _ = make_context(OK_BODY)
        
        url = context.build_url(PATH, [("locations", "39.7,-104.9"), ("samples", "2")])
        
        assert url == ("https://maps.googleapis.com/maps/api/elevation/json"
                       "?locations=39.7%2C-104.9&samples=2&key=AIzaTestKey")
    
    def test_build_url_signed(self, make_context):
        context, _ = make_context(OK_BODY, api_key=None, client_id="gme-test", client_secret="a2V5")
        
        url = context.build_url(PATH, [("locations", "enc:_p~iF~ps|U")])
        
        path_and_query = f"{PATH}?locations=enc%3A_p~iF~ps%7CU&client=gme-test"
        assert url == ("https://maps.googleapis.com" + path_and_query
                       + "&signature=" + sign_hmac("a2V5", path_and_query))
        assert "key=" not in url
    
    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "AIzaFromEnv")
        monkeypatch.setenv("GEOAPI_QUERIES_PER_SECOND", "3")
        
        context = GeoApiContext.from_config(transport=FakeTransport(OK_BODY))
        try:
            assert context.rate_limiter.queries_per_second == 3.0
            assert context.build_url(PATH, []).endswith("?key=AIzaFromEnv")
        finally:
            context.shutdown()
    
    def test_set_queries_per_second(self, make_context):
        context, _ = make_context(OK_BODY)
        context.set_queries_per_second(2.5)
        assert context.rate_limiter.queries_per_second == 2.5


class TestDispatch:
    """Test request dispatch, classification and retry."""
    
    def test_success_multi(self, make_context):
        context, transport = make_context(body(results=[{"elevation": 1.5}, {"elevation": 2.5}]))
        
        pending = context.get(MultiResponse(Elevation), PATH, "locations", "enc:abc")
        results = pending.result(timeout=5)
        
        assert [r.elevation for r in results] == [1.5, 2.5]
        assert pending.state is PendingState.COMPLETED
        assert pending.attempts == 1
        assert transport.urls == [context.build_url(PATH, [("locations", "enc:abc")])]
    
    def test_success_singular(self, make_context):
        context, _ = make_context(OK_BODY)
        
        result = context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        
        assert result == Elevation(elevation=1608.6)
    
    def test_get_with_params(self, make_context):
        context, transport = make_context(OK_BODY)
        
        context.get_with_params(SingularResponse(Elevation), PATH,
                                {"locations": "1,2", "samples": "4"}).result(timeout=5)
        
        assert "?locations=1%2C2&samples=4&key=" in transport.urls[0]
    
    def test_transient_error_then_success(self, make_context, caplog):
        """One transport failure: two attempts, one backoff sleep, then success."""
        context, transport = make_context(TransportError("Connection reset"), OK_BODY)
        
        with caplog.at_level(logging.WARNING, logger="src.geoapi.geoapi_context"):
            pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
            result = pending.result(timeout=5)
        
        assert result.elevation == 1608.6
        assert len(transport.urls) == 2
        assert pending.attempts == 2
        retry_logs = [r for r in caplog.records if r.message.startswith("Retrying")]
        assert len(retry_logs) == 1
    
    def test_request_denied_fails_immediately(self, make_context):
        context, transport = make_context(
            body(status="REQUEST_DENIED", error_message="The provided API key is invalid."))
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        
        with pytest.raises(RemoteApplicationError) as exc_info:
            pending.result(timeout=5)
        assert exc_info.value.status is ApiStatus.REQUEST_DENIED
        assert exc_info.value.message == "The provided API key is invalid."
        assert len(transport.urls) == 1
        assert pending.state is PendingState.FAILED
    
    @pytest.mark.parametrize("params", [("locations",), ("a", "1", "a", "2")])
    def test_invalid_params_fail_without_network(self, make_context, params):
        context, transport = make_context(OK_BODY)
        
        pending = context.get(SingularResponse(Elevation), PATH, *params)
        
        assert pending.done()
        assert pending.state is PendingState.FAILED
        assert isinstance(pending.exception(), LocalValidationError)
        assert transport.urls == []
    
    def test_invalid_base_path(self, make_context):
        context, transport = make_context(OK_BODY)
        pending = context.get(SingularResponse(Elevation), "maps/api/elevation/json")
        with pytest.raises(LocalValidationError, match="must start with '/'"):
            pending.result()
    
    def test_invalid_secret_fails_without_network(self, make_context):
        context, transport = make_context(OK_BODY, api_key=None, client_id="gme", client_secret="*")
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        assert isinstance(pending.exception(timeout=1), LocalValidationError)
        assert transport.urls == []
    
    def test_decode_error_not_retried(self, make_context):
        context, transport = make_context(b"<html>Service Unavailable</html>")
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        
        with pytest.raises(DecodeError):
            pending.result(timeout=5)
        assert len(transport.urls) == 1
    
    def test_empty_singular_result_is_decode_error(self, make_context):
        context, transport = make_context(body(results=[]))
        with pytest.raises(DecodeError, match="no result"):
            context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        assert len(transport.urls) == 1
    
    def test_over_query_limit_retried(self, make_context):
        context, transport = make_context(body(status="OVER_QUERY_LIMIT"), OK_BODY)
        
        result = context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        
        assert result.elevation == 1608.6
        assert len(transport.urls) == 2
    
    def test_over_query_limit_terminal_when_disabled(self, make_context, fast_config):
        fast_config.retry_over_query_limit = False
        context, transport = make_context(body(status="OVER_QUERY_LIMIT"), OK_BODY, config=fast_config)
        
        with pytest.raises(RemoteApplicationError) as exc_info:
            context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        
        assert exc_info.value.status is ApiStatus.OVER_QUERY_LIMIT
        assert len(transport.urls) == 1
    
    def test_unknown_error_retried(self, make_context):
        context, transport = make_context(body(status="UNKNOWN_ERROR"), body(status="UNKNOWN_ERROR"), OK_BODY)
        
        context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        
        assert len(transport.urls) == 3
    
    def test_retry_exhausted_after_time_budget(self, make_context, fast_config):
        fast_config.retry_timeout = 0.2
        context, transport = make_context(TransportError("Connection refused"), config=fast_config)
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        
        with pytest.raises(RetryExhaustedError) as exc_info:
            pending.result(timeout=5)
        assert isinstance(exc_info.value.cause, TransportError)
        assert "Connection refused" in str(exc_info.value)
        assert exc_info.value.attempts == len(transport.urls) == pending.attempts
        assert pending.attempts >= 2
    
    def test_backoff_past_time_budget_is_not_attempted(self, make_context, fast_config):
        """A backoff that would end after retry_timeout exhausts instead of sleeping."""
        fast_config.retry_timeout = 0.2
        fast_config.retry_initial_delay = 1.0
        fast_config.retry_max_delay = 1.0
        fast_config.retry_jitter = 0.0
        context, transport = make_context(TransportError("Connection reset"), OK_BODY, config=fast_config)

        start = time.monotonic()
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")

        with pytest.raises(RetryExhaustedError) as exc_info:
            pending.result(timeout=5)
        assert time.monotonic() - start < 1.0
        assert isinstance(exc_info.value.cause, TransportError)
        assert pending.state is PendingState.FAILED
        assert len(transport.urls) == pending.attempts == 1

    def test_unsendable_request_not_retried(self, make_context):
        context, transport = make_context(RequestFailedError("Request failed: Invalid URL"), OK_BODY)

        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")

        with pytest.raises(RequestFailedError):
            pending.result(timeout=5)
        assert len(transport.urls) == 1

    def test_retry_exhausted_after_max_retries(self, make_context, fast_config):
        fast_config.max_retries = 2
        context, transport = make_context(body(status="OVER_QUERY_LIMIT", error_message="quota"),
                                          config=fast_config)
        
        with pytest.raises(RetryExhaustedError) as exc_info:
            context.get(SingularResponse(Elevation), PATH, "locations", "1,2").result(timeout=5)
        
        assert len(transport.urls) == 3
        assert isinstance(exc_info.value.cause, RateLimitedError)
        assert exc_info.value.status is ApiStatus.OVER_QUERY_LIMIT
        assert exc_info.value.message == "quota"
    
    def test_local_rate_limit_timeout_is_retried(self, make_context):
        limiter = MagicMock(spec=TokenBucketRateLimiter)
        limiter.acquire.side_effect = [RateLimitedError("busy", local=True), 0.0]
        context, transport = make_context(OK_BODY, rate_limiter=limiter)
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        
        assert pending.result(timeout=5).elevation == 1608.6
        assert limiter.acquire.call_count == 2
        assert len(transport.urls) == 1
        assert pending.attempts == 1
    
    def test_callback_completion(self, make_context):
        context, _ = make_context(OK_BODY)
        done = threading.Event()
        received = []
        
        def on_result(result):
            received.append(result)
            done.set()
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        pending.set_callback(on_result, lambda error: done.set())
        
        assert done.wait(5)
        assert received == [Elevation(elevation=1608.6)]
    
    def test_failure_callback(self, make_context):
        context, _ = make_context(body(status="INVALID_REQUEST", error_message="bad locations"))
        errors = []
        done = threading.Event()
        
        def on_failure(error):
            errors.append(error)
            done.set()
        
        context.get(SingularResponse(Elevation), PATH, "locations", "x").set_callback(MagicMock(), on_failure)
        
        assert done.wait(5)
        assert errors[0].status is ApiStatus.INVALID_REQUEST
        assert errors[0].message == "bad locations"
    
    def test_concurrent_requests_share_limiter(self, make_context):
        context, transport = make_context(OK_BODY)
        
        pendings = [context.get(SingularResponse(Elevation), PATH, "locations", f"{i},0") for i in range(20)]
        
        assert all(p.result(timeout=10).elevation == 1608.6 for p in pendings)
        assert len(transport.urls) == 20
    
    def test_get_after_shutdown(self, make_context):
        context, transport = make_context(OK_BODY)
        context.shutdown()
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        
        with pytest.raises(GeoApiError, match="shut down"):
            pending.result(timeout=1)
        assert transport.urls == []


class TestCancellation:
    """Test cooperative cancellation."""
    
    def test_cancel_during_backoff(self, make_context, fast_config):
        fast_config.retry_timeout = 120.0
        fast_config.retry_initial_delay = 30.0
        fast_config.retry_max_delay = 30.0
        context, transport = make_context(TransportError("Connection reset"), config=fast_config)
        
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        wait_for_state(pending, PendingState.RETRY_WAIT)
        
        assert pending.cancel() is True
        context.shutdown()
        
        assert pending.state is PendingState.CANCELLED
        with pytest.raises(RequestCancelledError):
            pending.result(timeout=1)
        assert len(transport.urls) == 1
    
    def test_cancel_while_waiting_for_permit(self, make_context):
        """A request queued behind the rate limiter stops waiting once cancelled."""
        limiter = TokenBucketRateLimiter(queries_per_second=0.1, burst_capacity=1, timeout=30.0)
        assert limiter.try_acquire()
        context, transport = make_context(OK_BODY, rate_limiter=limiter)

        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        deadline = time.monotonic() + 5
        while limiter.get_available_tokens() > -0.5:
            assert time.monotonic() < deadline, "request never reserved a permit"
            time.sleep(0.005)

        start = time.monotonic()
        assert pending.cancel() is True
        context.shutdown()

        assert time.monotonic() - start < 5.0
        assert pending.cancelled()
        assert transport.urls == []
        # The unused reservation went back to the bucket
        assert limiter.get_available_tokens() > -0.5

    def test_cancel_discards_in_flight_result(self, make_context):
        started = threading.Event()
        release = threading.Event()
        
        class BlockingTransport(FakeTransport):
            def send(self, url):
                started.set()
                release.wait(5)
                return super().send(url)
        
        context = GeoApiContext(api_key="AIzaTestKey", transport=BlockingTransport(OK_BODY),
                                config=GeoApiConfig(max_workers=1))
        try:
            pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
            assert started.wait(5)
            
            pending.cancel()
            release.set()
        finally:
            context.shutdown()
        
        assert pending.cancelled()
        assert pending.result_or_none(timeout=1) is None
    
    def test_cancel_after_completion_has_no_effect(self, make_context):
        context, _ = make_context(OK_BODY)
        pending = context.get(SingularResponse(Elevation), PATH, "locations", "1,2")
        result = pending.result(timeout=5)
        
        assert pending.cancel() is False
        assert pending.state is PendingState.COMPLETED
        assert pending.result() == result
