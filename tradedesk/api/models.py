"""
Pydantic response models for the TradeDesk API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    services: Dict[str, str]
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    cache: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    detail: Optional[str] = None
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class QuotesResponse(BaseModel):
    """Batch quote response."""

    success: bool = True
    data: List[Dict[str, Any]]
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    cached: bool = False
    stale: bool = False


class ListResponse(BaseModel):
    """Chart, news and search responses."""

    success: bool = True
    data: List[Dict[str, Any]]
