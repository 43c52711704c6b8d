# src/deal_redemption/schemas/error.py
"""Error payload schema shared by every endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Typed failure clients switch on by `kind`."""

    kind: str = Field(..., description="Stable error identifier")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
