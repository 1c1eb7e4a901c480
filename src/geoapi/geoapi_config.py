"""
Tuning for the request dispatcher.

Defines the base URL, rate limit, retry/backoff budget, HTTP timeout and
worker pool size used by a GeoApiContext.
"""

from dataclasses import dataclass
from typing import Optional

from ..config.config_module import get_bool_config, get_config, get_float_config, get_int_config


@dataclass
class GeoApiConfig:
    """Configuration for a GeoApiContext."""
    
    base_url: str = "https://maps.googleapis.com"
    
    # Shared limiter: average rate and how long a caller may wait for a permit
    queries_per_second: float = 10.0
    rate_limit_timeout: float = 10.0
    
    # Backoff: initial * multiplier**n plus up to `retry_jitter` seconds, capped at retry_max_delay
    retry_timeout: float = 60.0
    retry_initial_delay: float = 0.5
    retry_multiplier: float = 1.5
    retry_max_delay: float = 10.0
    retry_jitter: float = 0.5
    max_retries: Optional[int] = None
    retry_over_query_limit: bool = True
    
    request_timeout: float = 30.0
    max_workers: int = 8
    
    def __post_init__(self):
        """Validate configuration values."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        self.base_url = self.base_url.rstrip("/")
        
        if self.queries_per_second <= 0:
            raise ValueError(f"queries_per_second must be positive, got {self.queries_per_second}")
        
        for name in ("rate_limit_timeout", "retry_timeout", "retry_initial_delay",
                     "retry_max_delay", "retry_jitter"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        
        if self.retry_multiplier < 1:
            raise ValueError(f"retry_multiplier must be at least 1, got {self.retry_multiplier}")
        
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
    
    @classmethod
    def from_env(cls) -> "GeoApiConfig":
        """Build a config from GEOAPI_* environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            base_url=get_config("GEOAPI_BASE_URL", defaults.base_url),
            queries_per_second=get_float_config("GEOAPI_QUERIES_PER_SECOND", defaults.queries_per_second),
            rate_limit_timeout=get_float_config("GEOAPI_RATE_LIMIT_TIMEOUT", defaults.rate_limit_timeout),
            retry_timeout=get_float_config("GEOAPI_RETRY_TIMEOUT", defaults.retry_timeout),
            retry_initial_delay=get_float_config("GEOAPI_RETRY_INITIAL_DELAY", defaults.retry_initial_delay),
            retry_multiplier=get_float_config("GEOAPI_RETRY_MULTIPLIER", defaults.retry_multiplier),
            retry_max_delay=get_float_config("GEOAPI_RETRY_MAX_DELAY", defaults.retry_max_delay),
            retry_jitter=get_float_config("GEOAPI_RETRY_JITTER", defaults.retry_jitter),
            max_retries=get_int_config("GEOAPI_MAX_RETRIES", defaults.max_retries),
            retry_over_query_limit=get_bool_config("GEOAPI_RETRY_OVER_QUERY_LIMIT", defaults.retry_over_query_limit),
            request_timeout=get_float_config("GEOAPI_REQUEST_TIMEOUT", defaults.request_timeout),
            max_workers=get_int_config("GEOAPI_MAX_WORKERS", defaults.max_workers),
        )
