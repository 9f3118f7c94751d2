"""Common Pydantic schemas and response envelopes."""

from typing import Any, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="Dotted path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class GeoPoint(BaseModel):
    """GeoJSON point with a postal address."""

    type: Literal["Point"] = Field("Point", description="GeoJSON geometry type")
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    address: Optional[str] = Field(None, description="Street address")
    description: Optional[str] = Field(None, description="Human readable place name")


class Location(GeoPoint):
    """A stop on a tour's itinerary."""

    day: Optional[int] = Field(None, ge=0, description="Day of the tour this stop is visited")


class MessageResponse(BaseModel):
    status: str = "success"
    message: str


def success_list(items: Iterable[BaseModel], include: Optional[set[str]] = None) -> dict[str, Any]:
    """List envelope: ``{"status", "results", "data": [...]}``."""
    data = [item.model_dump(mode="json", include=include) for item in items]
    return {"status": "success", "results": len(data), "data": data}


def success_document(item: BaseModel, include: Optional[set[str]] = None) -> dict[str, Any]:
    """Single document envelope: ``{"status", "data": {...}}``."""
    return {"status": "success", "data": item.model_dump(mode="json", include=include)}
