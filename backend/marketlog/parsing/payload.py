from __future__ import annotations

from functools import lru_cache
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from marketlog.errors import DecodeError
from marketlog.schemas.events import Event
from marketlog.schemas.marketdata import MarketEnvelope

RecordT = TypeVar("RecordT", bound=BaseModel)


@lru_cache(maxsize=None)
def _batch_adapter(model: type[BaseModel]) -> TypeAdapter:
    return TypeAdapter(list[model])


def _is_shape_mismatch(exc: ValidationError) -> bool:
    # Only a top-level "not a list" error means the payload may be a single record.
    errors = exc.errors()
    return bool(errors) and all(
        error["type"] == "list_type" and not error["loc"] for error in errors
    )


def decode_records(payload: bytes, model: type[RecordT]) -> list[RecordT]:
    """Decode a JSON array of records, or a single record object.

    The array form is tried first. A bare object falls back to a single-record
    parse whose result is wrapped in a one-element list, so callers always get
    a list. An empty array decodes to an empty list.
    """
    try:
        return _batch_adapter(model).validate_json(payload)
    except ValidationError as exc:
        if not _is_shape_mismatch(exc):
            raise DecodeError(str(exc)) from exc

    try:
        return [model.model_validate_json(payload)]
    except ValidationError as exc:
        raise DecodeError(str(exc)) from exc


def decode_events(payload: bytes) -> list[Event]:
    return decode_records(payload, Event)


def decode_envelope(payload: bytes) -> MarketEnvelope:
    try:
        return MarketEnvelope.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodeError(str(exc)) from exc
