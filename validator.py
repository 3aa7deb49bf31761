"""
Response validation for the FatSecret API.

Every decoded response goes through two ordered checks:

1. Error-envelope detection. A payload shaped
   {"error": {"code": <int>, "message": <str>}} is an upstream error and is
   reported as ApiError, whatever shape the caller expected.
2. Shape validation against the caller's pydantic model. Repeating fields
   are normalized to lists by normalize_to_list (see schemas.repeated),
   because FatSecret sends a lone item as a bare object, several items as
   an array and no items as a missing/null field.

The result is a RequestOutcome, a tagged value that is either the data or
exactly one of the three typed errors.
"""
from typing import Any, List, Optional, Tuple, Type

import pydantic
from pydantic import BaseModel, StrictInt, StrictStr

from fatsecret_errors import (
    ApiError, FatSecretError, TransportError, ValidationError, MAX_VALIDATION_ISSUES
)


SUCCESS = 'success'
TRANSPORT_ERROR = 'transport_error'
API_ERROR = 'api_error'
VALIDATION_ERROR = 'validation_error'

_ERROR_KINDS = {
    TransportError: TRANSPORT_ERROR,
    ApiError: API_ERROR,
    ValidationError: VALIDATION_ERROR,
}


def normalize_to_list(value: Any) -> List[Any]:
    """
    Normalize FatSecret's single-or-array encoding to a list.

    None becomes [], a list is returned as-is, anything else is wrapped in
    a one-element list.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class ApiErrorDetail(BaseModel):
    code: StrictInt
    message: StrictStr


class ApiErrorEnvelope(BaseModel):
    """Upstream error reply: {"error": {"code": ..., "message": ...}}."""
    error: ApiErrorDetail


class RequestOutcome:
    """
    Result of a signed request: either data or one typed error.

    kind is one of 'success', 'transport_error', 'api_error' or
    'validation_error'.
    """

    def __init__(self, kind: str, data: Any = None, error: Optional[FatSecretError] = None):
        self.kind = kind
        self.data = data
        self.error = error

    @classmethod
    def success(cls, data: Any) -> 'RequestOutcome':
        return cls(SUCCESS, data=data)

    @classmethod
    def failure(cls, error: FatSecretError) -> 'RequestOutcome':
        return cls(_ERROR_KINDS[type(error)], error=error)

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS

    def unwrap(self) -> Any:
        """Return the data, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data

    def __repr__(self):
        if self.ok:
            return f"RequestOutcome(kind={self.kind!r})"
        return f"RequestOutcome(kind={self.kind!r}, error={self.error!r})"


def check_for_api_error(data: Any) -> None:
    """
    Raise ApiError if data is a FatSecret error envelope.

    The match is structural and strict: code must be an integer and message
    a string.
    """
    try:
        envelope = ApiErrorEnvelope.model_validate(data)
    except pydantic.ValidationError:
        return
    raise ApiError(envelope.error.code, envelope.error.message)


def _format_loc(loc: Tuple) -> str:
    return '.'.join(str(part) for part in loc) if loc else '(root)'


def _issues(exc: pydantic.ValidationError) -> List[Tuple[str, str]]:
    return [
        (_format_loc(err.get('loc', ())), err.get('msg', 'Invalid value'))
        for err in exc.errors()[:MAX_VALIDATION_ISSUES]
    ]


def _dump(value: Any) -> Any:
    """
    Convert a validated model back to plain dicts and lists.

    Fields present in the response are kept, explicit nulls included, as
    are unknown fields and list/container defaults. Optional fields the
    response left out stay out.
    """
    if isinstance(value, BaseModel):
        out = {}
        for name, field in type(value).model_fields.items():
            if name in value.model_fields_set or field.default_factory is not None:
                out[name] = _dump(getattr(value, name))
        for name, extra in (value.model_extra or {}).items():
            out[name] = _dump(extra)
        return out
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return value


def classify_response(shape: Type[BaseModel], data: Any) -> RequestOutcome:
    """
    Classify a decoded response as success, api error or validation error.

    Args:
        shape: Pydantic model describing the expected response
        data: Decoded response body

    Returns:
        RequestOutcome carrying the normalized data (plain dicts and lists)
        or the error
    """
    try:
        check_for_api_error(data)
    except ApiError as e:
        return RequestOutcome.failure(e)

    try:
        model = shape.model_validate(data)
    except pydantic.ValidationError as e:
        return RequestOutcome.failure(ValidationError(_issues(e), data))

    return RequestOutcome.success(_dump(model))


def validate_response(shape: Type[BaseModel], data: Any) -> Any:
    """
    Validate a decoded response and return the normalized data.

    Raises:
        ApiError: If data is an upstream error envelope
        ValidationError: If data does not match shape
    """
    return classify_response(shape, data).unwrap()
