from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class IngestResult(BaseModel):
    status: Literal["accepted"] = "accepted"
    ingested: int


class FetchJobResult(BaseModel):
    status: Literal["queued"] = "queued"
    job_id: str
    request_id: str
