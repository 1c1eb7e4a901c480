"""
Response classification.

A response shape describes what the caller expects back (one object or a
list of objects, and the pydantic model for each). Classifying a payload
against a shape yields exactly one of Success(result) or Failure(ApiError).
Classification is pure: the same payload always yields the same outcome.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .geoapi_errors import ApiError, ApiStatus, DecodeError

T = TypeVar("T")


class ResponseEnvelope(BaseModel):
    """Fields common to every service response."""
    model_config = ConfigDict(extra="allow")

    status: str
    error_message: Optional[str] = None
    results: Optional[List[Any]] = None
    result: Optional[Any] = None


@dataclass(frozen=True)
class Success(Generic[T]):
    result: T

    @property
    def successful(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: ApiError

    @property
    def successful(self) -> bool:
        return False


ClassifiedResponse = Union[Success[T], Failure]


class ResponseShape(ABC, Generic[T]):
    """
    Descriptor for the result a request is expected to produce.
    
    Args:
        result_type: pydantic model each result element is validated into,
            or None to keep the raw decoded JSON
    """

    def __init__(self, result_type: Optional[Type[BaseModel]] = None):
        self.result_type = result_type

    def parse(self, body: Union[bytes, str]) -> ClassifiedResponse:
        """
        Decode a raw body and classify it.
        
        Raises:
            DecodeError: If the body is not a JSON object with a status
        """
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Response is not valid JSON: {e}")
        return self.classify(payload)

    def classify(self, payload: Mapping[str, Any]) -> ClassifiedResponse:
        """
        Classify a decoded payload.
        
        Returns:
            Success with the extracted result when status is OK,
            otherwise Failure carrying the status and message
            
        Raises:
            DecodeError: If the payload is malformed or the result cannot be
                extracted from a successful response
        """
        if not isinstance(payload, Mapping):
            raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
        try:
            envelope = ResponseEnvelope.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"Malformed response envelope: {e}")
        
        if envelope.status != ApiStatus.OK.value:
            return Failure(ApiError.from_status(envelope.status, envelope.error_message))
        
        return Success(self._extract(envelope))

    def _convert(self, item: Any) -> Any:
        if self.result_type is None:
            return item
        try:
            return self.result_type.model_validate(item)
        except ValidationError as e:
            raise DecodeError(f"Result does not match {self.result_type.__name__}: {e}")

    @abstractmethod
    def _extract(self, envelope: ResponseEnvelope) -> T:
        ...


class SingularResponse(ResponseShape[Any]):
    """Expects exactly one result object."""

    def _extract(self, envelope: ResponseEnvelope) -> Any:
        if envelope.result is not None:
            return self._convert(envelope.result)
        if not envelope.results:
            raise DecodeError("Successful response contained no result")
        return self._convert(envelope.results[0])


class MultiResponse(ResponseShape[List[Any]]):
    """Expects a list of result objects."""

    def _extract(self, envelope: ResponseEnvelope) -> List[Any]:
        if envelope.results is None:
            return [self._convert(envelope.result)] if envelope.result is not None else []
        return [self._convert(item) for item in envelope.results]
