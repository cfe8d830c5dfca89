# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the admin endpoints."""

from datetime import datetime
from typing import List, Optional

from auth.schemas import CamelModel


# -- Requests --------------------------------------------------------------


class CreateUserRequest(CamelModel):
    email: str
    password: str
    first_name: str
    last_name: str
    is_admin: bool = False
    is_active: bool = True


class UpdateUserRequest(CamelModel):
    """Partial update – omitted fields are left untouched."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None


class ResetPasswordRequest(CamelModel):
    new_password: str


# -- Responses -------------------------------------------------------------


class UserRow(CamelModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(CamelModel):
    id: int
    actor_email: Optional[str] = None       # resolved from actor_id join
    target_email: Optional[str] = None      # resolved from target_user_id join
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(CamelModel):
    logs: List[AuditLogRow]
