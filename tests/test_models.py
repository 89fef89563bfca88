"""
Unit Tests for table defaults
"""
from datetime import datetime

from sqlmodel import Session, select

from models import AuditLog, RefreshToken, User


def test_timestamps_are_stored_as_naive_local_time(session: Session):
    user = User(email="naive@example.com", password_hash="x")
    session.add(user)
    session.flush()
    session.add(RefreshToken(user_id=user.id, token_hash="h"))
    session.add(AuditLog(action_type="REGISTER", table_name="Users", record_id=user.id))
    session.commit()
    session.expire_all()

    stored = session.get(User, user.id)
    token = session.exec(select(RefreshToken)).one()
    entry = session.exec(select(AuditLog)).one()

    for moment in (stored.created_at, token.issued_at, entry.action_time):
        assert moment.tzinfo is None
        assert abs((datetime.now() - moment).total_seconds()) < 60
    assert token.expires_at is None


def test_register_persists_through_the_api(client):
    response = client.post(
        "/auth/register",
        json={"email": "first@example.com", "password": "pw", "role": "donor"},
    )
    assert response.status_code == 201
