"""Shared model configuration.

The JSON API speaks camelCase while stored documents are snake_case; models
accept either on input and serialize by alias.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ClubModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(ClubModel):
    message: str


class ConfirmRequest(ClubModel):
    """Body for destructive operations; confirm_text must be DELETE"""
    confirm_text: Optional[str] = None


class MemberIdRequest(ClubModel):
    member_id: Optional[str] = None


class MemberRef(ClubModel):
    id: str
    name: str


class MemberContact(ClubModel):
    id: str
    name: str
    email: str
