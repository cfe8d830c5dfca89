# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Pydantic request / response models for the auth and self-service endpoints.

Field names are snake_case in Python and camelCase on the wire
(``firstName``, ``isAdmin`` …).  No response model has a password field, so
digests cannot be serialised by accident.
"""

from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


# -- Requests --------------------------------------------------------------


class RegisterRequest(CamelModel):
    email: str
    password: str
    first_name: str
    last_name: str


class LoginRequest(CamelModel):
    email: str
    password: str


class UpdateProfileRequest(CamelModel):
    first_name: str
    last_name: str
    email: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


# -- Responses -------------------------------------------------------------


class UserProfile(CamelModel):
    """Safe profile returned by register, login and GET /api/user."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool


class ProfileUpdateResponse(CamelModel):
    message: str
    user: UserProfile


class MessageResponse(CamelModel):
    message: str
