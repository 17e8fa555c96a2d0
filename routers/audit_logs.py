"""
Audit log APIs (super admin only).
"""
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
import csv
import io
import json

from database.models import Account
from auth.dependencies import get_db_session, require_super_admin
from services.audit_service import AuditService
from services.serializers import audit_log_to_dict
from core.pagination import paginate
from core.validators import parse_datetime


router = APIRouter(prefix="/api/super-admin/audit-logs", tags=["audit-logs"])


def _filtered(db: Session, action, resource_type, user, from_date, to_date):
    return AuditService.search(
        db,
        action=action,
        resource_type=resource_type,
        user_id=user,
        from_dt=parse_datetime(from_date, "from"),
        to_dt=parse_datetime(to_date, "to"),
    )


@router.get("")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    user: Optional[int] = Query(None, alias="user"),
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    """
    List audit logs (paginated, filterable).
    Super admin only.
    """
    query = _filtered(db, action, resource_type, user, from_date, to_date)
    logs, pagination = paginate(query, page, limit)
    return {"success": True, "data": [audit_log_to_dict(log) for log in logs], "pagination": pagination}


@router.get("/export")
async def export_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    user: Optional[int] = Query(None, alias="user"),
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    format: str = Query("csv", pattern="^(csv|json)$"),
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    """
    Export audit logs (CSV/JSON).
    Super admin only.
    """
    # No pagination for export
    logs = [audit_log_to_dict(log) for log in _filtered(db, action, resource_type, user, from_date, to_date).all()]
    stamp = datetime.utcnow().strftime('%Y%m%d_%H%M%S')

    if format == "csv":
        output = io.StringIO()
        writer = csv.writer(output)
        columns = ["id", "timestamp", "action", "resourceType", "resourceId", "userId", "ip", "userAgent", "details"]
        writer.writerow(columns)
        for log in logs:
            row = [log[c] for c in columns[:-1]]
            row.append(json.dumps(log["details"]) if log["details"] else "")
            writer.writerow(row)

        csv_content = output.getvalue()
        output.close()
        return Response(
            content=csv_content,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=audit_logs_{stamp}.csv"}
        )

    return Response(
        content=json.dumps(logs, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename=audit_logs_{stamp}.json"}
    )
