"""
Pydantic models for storebot API requests and responses.
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from storebot.data.models import Product


class ChatResponse(BaseModel):
    """Response model for chat endpoint."""
    response: str = Field(description="Assistant text, possibly ending with a [PRODUCTOS:...] marker")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    error: str


class ResolveRequest(BaseModel):
    """Resolve product cards from assistant text or explicit ids."""
    text: Optional[str] = Field(default=None, description="Assistant text carrying a marker")
    ids: Optional[List[str]] = Field(default=None, description="Product ids (take precedence over text)")


class ResolveResponse(BaseModel):
    """Products for the resolvable ids plus the text to display."""
    products: List[Product] = Field(default_factory=list)
    display_text: str = Field(default="", description="Text with markers stripped")


class TaxonomyResponse(BaseModel):
    """Current category -> subcategories map."""
    categories: Dict[str, List[str]]


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    service: str
    version: str
    config: Dict[str, Any]
