"""
Common schema types used across the API.
"""

from typing import Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""
    
    detail: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    
    status: str = "ok"
    version: str
    grant_store: str = "memory"
