from typing import Optional

from sqlmodel import Session

from models import AuditLog


def record_audit(
    session: Session,
    *,
    action_type: str,
    table_name: str,
    record_id: Optional[int],
    user_role: Optional[str] = None,
    description: Optional[str] = None,
) -> AuditLog:
    """
    Append an AuditLog row to the current unit of work.

    Never commits: the row lands or disappears together with the mutation
    it describes.
    """
    entry = AuditLog(
        user_role=user_role,
        action_type=action_type,
        record_id=record_id,
        table_name=table_name,
        description=description,
    )
    session.add(entry)
    return entry
