"""Pydantic schemas for JSON replies returned by the remote model."""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DateExtractionResponse(BaseModel):
    """Reply contract of the date extraction prompt."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: Literal["point", "range", "none"] = "none"
    start_iso: Optional[str] = Field(default=None, alias="startISO")
    end_iso: Optional[str] = Field(default=None, alias="endISO")
    granularity: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ClassificationResponse(BaseModel):
    """Reply contract of the message classification prompt."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[Literal["simple_info", "guidance", "data_question", "general"]] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
