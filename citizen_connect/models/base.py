"""
Response envelope shared by every endpoint.

DESIGN PRINCIPLE:
- One canonical shape: {success, apiVersion, message?, <payload keys>}
- Payload keys sit beside the envelope fields (user, token, request, ...)
"""

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

API_VERSION = "1"


class BaseResponse(BaseModel):
    """
    Envelope fields present on every response, success or failure.
    """
    success: bool = True
    api_version: str = Field(default=API_VERSION, alias="apiVersion")
    message: Optional[str] = None

    class Config:
        populate_by_name = True


def envelope(message: Optional[str] = None, **payload: Any) -> Dict[str, Any]:
    """Build a success body with the payload keys merged in."""
    body = BaseResponse(message=message).model_dump(by_alias=True, exclude_none=True)
    body.update(jsonable_encoder(payload, by_alias=True))
    return body


def error_envelope(message: str, **extra: Any) -> Dict[str, Any]:
    body = BaseResponse(success=False, message=message).model_dump(by_alias=True)
    body.update(jsonable_encoder(extra))
    return body
