from __future__ import annotations

from typing import Any, Mapping

from fastapi import Request
from sqlalchemy.orm import Session

from venuesync.models.audit_log import AuditLog

REDACTED = "<redacted>"

SENSITIVE_KEYS = {"password", "hashed_password", "code", "state"}
SENSITIVE_SUFFIXES = ("token", "secret")


def _is_sensitive(key: str) -> bool:
    k = key.lower()
    return k in SENSITIVE_KEYS or k.endswith(SENSITIVE_SUFFIXES)


def _sanitize(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {k: REDACTED if _is_sensitive(str(k)) else _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(v) for v in obj]
    return obj


def client_info(request: Request | None) -> tuple[str, str]:
    """(ip, user agent) of the caller, truncated to the stored column widths."""
    if request is None:
        return "", ""
    ip = request.client.host if request.client else ""
    return ip[:64], request.headers.get("user-agent", "")[:255]


def write_audit_log(
    db: Session,
    *,
    actor_user_id: str | None,
    action_type: str,
    target_type: str = "",
    target_id: str = "",
    summary: str = "",
    diff_json: Mapping[str, Any] | None = None,
    request: Request | None = None,
) -> None:
    """Append an audit entry and commit it.

    Call after the audited change is committed; token, secret and password
    values in ``diff_json`` are replaced before storage.
    """
    ip, ua = client_info(request)
    db.add(
        AuditLog(
            actor_user_id=actor_user_id,
            action_type=action_type,
            target_type=target_type,
            target_id=str(target_id),
            summary=summary[:255],
            diff_json=_sanitize(diff_json) if diff_json is not None else None,
            ip_address=ip,
            user_agent=ua,
        )
    )
    db.commit()
