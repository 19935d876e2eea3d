"""
Validation result schemas
"""

from pydantic import BaseModel
from typing import List, Optional

from telemetry_ingest.schemas.tive import TivePayload


class FieldError(BaseModel):
    field: str
    message: str


class ValidationResult(BaseModel):
    valid: bool
    errors: List[FieldError] = []
    payload: Optional[TivePayload] = None

    def error_dicts(self) -> List[dict]:
        return [error.model_dump() for error in self.errors]
