from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class Role(str, Enum):
    DONOR = "donor"
    VOLUNTEER = "volunteer"
    SHELTER = "shelter"
    RECIPIENT = "recipient"
    ADMIN = "admin"


class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


def parse_urgency(value) -> str:
    """Normalise an urgency level, raising ValueError for unknown ones."""
    return Urgency(value).value


URGENCY_RANK = {
    Urgency.URGENT.value: 1,
    Urgency.HIGH.value: 2,
    Urgency.MEDIUM.value: 3,
    Urgency.LOW.value: 4,
}


class RequestStatus(str, Enum):
    OPEN = "Open"
    MATCHED = "Matched"
    FULFILLED = "Fulfilled"


class DonationStatus(str, Enum):
    PENDING = "Pending"
    MATCHED = "Matched"
    DELIVERED = "Delivered"


class OpportunityStatus(str, Enum):
    OPEN = "Open"
    FILLED = "Filled"


class AssignmentStatus(str, Enum):
    ASSIGNED = "Assigned"
    COMPLETED = "Completed"


# ---------------------------------------------------------------------------
# Principals and credentials
#
# All timestamps are naive local time, the same clock opportunity expiry
# is checked against.
# ---------------------------------------------------------------------------

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: Optional[str] = None
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = Role.DONOR.value
    created_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class RefreshToken(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)

    token_hash: str
    issued_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)
    # Persisted but never populated or checked; the signed token's own
    # expiry is the only one enforced.
    expires_at: Optional[NaiveDatetime] = Field(default=None, sa_type=DateTime)


# ---------------------------------------------------------------------------
# Role profiles (one per principal, recipients and admins have none)
# ---------------------------------------------------------------------------

class Donor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", unique=True)

    donor_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    donor_type: Optional[str] = None
    registered_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class Volunteer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", unique=True)

    volunteer_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    area_of_service: Optional[str] = None
    availability_status: str = "Available"
    joined_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class Shelter(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", unique=True)

    shelter_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    capacity: int = 0
    current_occupancy: int = 0
    food_stock_status: str = "Adequate"
    registered_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


# ---------------------------------------------------------------------------
# Requests, donations and the matches between them
# ---------------------------------------------------------------------------

class Request(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    shelter_id: int = Field(foreign_key="shelter.id", ondelete="CASCADE", index=True)

    request_type: str
    # Remaining unfulfilled amount; reaches 0 exactly when Fulfilled.
    quantity: Decimal = Field(max_digits=10, decimal_places=2)
    unit: str
    urgency_level: str = Urgency.MEDIUM.value
    status: str = RequestStatus.OPEN.value  # Open | Matched | Fulfilled
    description: Optional[str] = None
    requested_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class Donation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    donor_id: int = Field(foreign_key="donor.id", ondelete="CASCADE", index=True)
    shelter_id: Optional[int] = Field(
        default=None, foreign_key="shelter.id", ondelete="SET NULL"
    )

    food_type: str
    quantity: str  # amount and unit, e.g. "60 kg"
    expiry_date: Optional[date] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    status: str = DonationStatus.PENDING.value  # Pending | Matched | Delivered
    donated_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    donation_id: int = Field(foreign_key="donation.id", ondelete="CASCADE")
    request_id: int = Field(foreign_key="request.id", ondelete="CASCADE", index=True)
    volunteer_id: Optional[int] = Field(
        default=None, foreign_key="volunteer.id", ondelete="SET NULL"
    )

    matched_on: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)
    # Written once as Pending, not re-derived from request/donation state.
    status: str = "Pending"


# ---------------------------------------------------------------------------
# Volunteer opportunities and assignments
# ---------------------------------------------------------------------------

class VolunteerOpportunity(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    shelter_id: int = Field(foreign_key="shelter.id", ondelete="CASCADE", index=True)

    title: str
    description: Optional[str] = None
    task_type: str
    volunteers_needed: int = 1
    volunteers_assigned: int = 0
    date_needed: Optional[date] = None
    time_needed: Optional[time] = None
    duration_hours: Optional[Decimal] = Field(
        default=None, max_digits=4, decimal_places=2
    )
    location: Optional[str] = None
    urgency_level: str = Urgency.MEDIUM.value
    status: str = OpportunityStatus.OPEN.value  # Open | Filled
    created_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class VolunteerAssignment(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("opportunity_id", "volunteer_id", name="unique_assignment"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    opportunity_id: int = Field(
        foreign_key="volunteeropportunity.id", ondelete="CASCADE"
    )
    volunteer_id: int = Field(foreign_key="volunteer.id", ondelete="CASCADE", index=True)

    assigned_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)
    status: str = AssignmentStatus.ASSIGNED.value  # Assigned | Completed


class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_role: Optional[str] = None
    action_type: str
    record_id: Optional[int] = None
    table_name: str
    action_time: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)
    description: Optional[str] = None
