from __future__ import annotations

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Naive times would be stored in the host zone; an offset is required.
    timestamp: AwareDatetime
    level: str
    source: str
    message: str
    context: dict[str, str] = Field(default_factory=dict)

    @field_validator("context", mode="before")
    @classmethod
    def _null_context(cls, value):
        return {} if value is None else value
