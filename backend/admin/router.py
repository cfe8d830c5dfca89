# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – user lifecycle management and the audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid session but belongs to a non-admin user receives 403
(not 404) before any business logic runs; an anonymous one receives 401.
"""

import io
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from database import get_db
from core.security import Principal, get_auth_service, get_client_ip, require_admin
from auth.schemas import MessageResponse
from admin.schemas import (
    AuditLogListResponse,
    AuditLogRow,
    CreateUserRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
    UserRow,
)

router = APIRouter(prefix="/api", tags=["admin"])


# ---------------------------------------------------------------------------
# GET /api/users  – list all users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=List[UserRow])
def list_users(
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Return every user row (no password data – handled by the schema)."""
    return auth.list_users(db)


# ---------------------------------------------------------------------------
# POST /api/users  – create a new user
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserRow, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Provision an account with explicit role and status flags."""
    return auth.create_user(
        db, admin, body.email, body.password, body.first_name, body.last_name,
        is_admin=body.is_admin,
        is_active=body.is_active,
        request_ip=get_client_ip(request),
    )


# ---------------------------------------------------------------------------
# PATCH /api/users/{id}  – edit profile fields, promote/demote, enable/disable
# ---------------------------------------------------------------------------


@router.patch("/users/{user_id}", response_model=UserRow)
def update_user(
    user_id: str,
    body: UpdateUserRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """
    Partial update of another user.  Guard: an admin cannot demote or
    deactivate their own account.
    """
    return auth.update_user(
        db, admin, user_id, body.model_dump(exclude_unset=True),
        request_ip=get_client_ip(request),
    )


# ---------------------------------------------------------------------------
# DELETE /api/users/{id}  – soft-delete (deactivate) a user account
# ---------------------------------------------------------------------------


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    request: Request,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """
    Set ``is_active = False``.  The user can no longer log in, and any
    existing sessions are dropped the next time they are presented.

    Guard: an admin cannot delete their own account.
    """
    auth.deactivate_user(db, admin, user_id, request_ip=get_client_ip(request))
    return MessageResponse(message="User deactivated successfully")


# ---------------------------------------------------------------------------
# PUT /api/users/{id}/password  – admin resets another user's password
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/password", response_model=MessageResponse)
def reset_password(
    user_id: str,
    body: ResetPasswordRequest,
    request: Request,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Overwrite a user's password without knowing the old one."""
    auth.reset_password(db, admin, user_id, body.new_password, request_ip=get_client_ip(request))
    return MessageResponse(message="Password reset successfully")


# ---------------------------------------------------------------------------
# GET /api/admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


@router.get("/admin/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """
    Return audit log rows newest-first.

    * ``emails`` – match rows where *either* the actor or the target has one
                   of the given addresses.
    * ``since`` / ``until`` – ISO-8601 bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    rows = auth.audit.query(db, emails=emails, since=since, until=until, limit=limit)
    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=row.id,
            actor_email=actor_email,
            target_email=target_email,
            action=row.action,
            detail=row.detail,
            request_ip=row.request_ip,
            created_at=row.created_at,
        )
        for row, actor_email, target_email in rows
    ])


# ---------------------------------------------------------------------------
# GET /api/admin/audit-logs/export  – download audit logs as Excel
# ---------------------------------------------------------------------------

_AUDIT_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_AUDIT_HEADER_FILL  = PatternFill(start_color="2F5D8A", end_color="2F5D8A", fill_type="solid")
_AUDIT_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_AUDIT_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_AUDIT_EXPORT_HEADERS = ["ID", "Time", "Actor", "Target", "Action", "Request IP", "Details"]
_AUDIT_COL_MIN = [8, 20, 28, 28, 18, 16, 50]


@router.get("/admin/audit-logs/export")
def export_audit_logs(
    emails: list[str] | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """
    Export the audit trail as an Excel workbook.  Accepts the same filters
    as the listing endpoint; no row limit.
    """
    rows = auth.audit.query(db, emails=emails, since=since, until=until)

    wb = Workbook()
    ws = wb.active
    ws.title = "Audit Logs"

    # Header row
    ws.append(_AUDIT_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _AUDIT_HEADER_FONT
        cell.fill = _AUDIT_HEADER_FILL
        cell.alignment = _AUDIT_HEADER_ALIGN
        cell.border = _AUDIT_THIN_BORDER

    # Data rows
    for row, actor_email, target_email in rows:
        ws.append([
            row.id,
            row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else "",
            actor_email or "",
            target_email or "",
            row.action,
            row.request_ip or "",
            row.detail or "",
        ])
        row_idx = ws.max_row
        for col_idx in range(1, len(_AUDIT_EXPORT_HEADERS) + 1):
            ws.cell(row=row_idx, column=col_idx).border = _AUDIT_THIN_BORDER

    # Column widths
    for col_idx, min_w in enumerate(_AUDIT_COL_MIN, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = min_w

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.xlsx"'},
    )
