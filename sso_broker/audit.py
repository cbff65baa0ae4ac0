"""
Audit trail of login/link outcomes. Never stores tokens, only ids and outcome.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from sso_broker.database import get_db
from sso_broker.models import AuditLog

EVENT_LOGIN_OK = "login_ok"
EVENT_LOGIN_CHARACTER_NOT_FOUND = "login_character_not_found"
EVENT_LOGIN_MISSING_SCOPES = "login_missing_scopes"
EVENT_PROFILE_CREATED = "profile_created"
EVENT_CHARACTER_ADDED = "character_added"
EVENT_GRANT_REPLACED = "grant_replaced"
EVENT_VERIFY_OK = "verify_ok"
EVENT_VERIFY_BLOCKED = "verify_blocked"

OUTCOME_SUCCESS = "success"
OUTCOME_BLOCKED = "blocked"


def get_client_ip(request: Request | None) -> str | None:
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


def log_audit(
    db: Session,
    event_type: str,
    *,
    character_id: int | None = None,
    account_id: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
) -> None:
    """Append one audit record."""
    db.add(
        AuditLog(
            event_type=event_type,
            character_id=character_id,
            account_id=account_id,
            ip=ip,
            outcome=outcome,
        )
    )
    db.commit()


router = APIRouter(tags=["audit"])


@router.get("/audit")
def list_audit_logs(
    limit: int = 100,
    event_type: str | None = None,
    account_id: str | None = None,
    db: Session = Depends(get_db),
):
    """Most recent audit events first, optionally filtered."""
    q = db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if event_type:
        q = q.filter(AuditLog.event_type == event_type)
    if account_id:
        q = q.filter(AuditLog.account_id == account_id)
    rows = q.limit(min(max(1, limit), 500)).all()
    return [
        {
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "event_type": r.event_type,
            "character_id": r.character_id,
            "account_id": r.account_id,
            "ip": r.ip,
            "outcome": r.outcome,
        }
        for r in rows
    ]
