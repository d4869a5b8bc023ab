"""
Response envelopes for user-facing actions.

Success:  {"success": true, "data": ...}
Failure:  {"success": false, "error": "...", "code": "..."}  (see DomainError.to_dict)
"""

from typing import Any, Dict, Generic, Literal, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    success: Literal[True] = True
    data: T
    message: Optional[str] = None


class ActionError(BaseModel):
    success: Literal[False] = False
    error: str
    code: str
    details: Optional[Dict[str, Any]] = None
