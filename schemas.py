from datetime import date, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models import Role, Urgency


class UserCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    password: str = Field(min_length=1)
    role: Role

    # role-specific profile fields
    phone: Optional[str] = None
    address: Optional[str] = None
    donor_type: Optional[str] = None
    area_of_service: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)


class UserRead(BaseModel):
    user_id: int = Field(validation_alias="id")
    email: EmailStr
    name: Optional[str] = None
    role: Role

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshData(BaseModel):
    refreshToken: str = Field(min_length=1)


class RequestCreate(BaseModel):
    request_type: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit: str = Field(min_length=1)
    urgency_level: Urgency = Urgency.MEDIUM
    description: Optional[str] = None


class DonationCreate(BaseModel):
    """Body of a fulfillment or a standalone donation."""

    foodType: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit: str = Field(min_length=1)
    expiryDate: Optional[date] = None
    pickupLocation: str = Field(min_length=1)
    notes: Optional[str] = None


class OpportunityCreate(BaseModel):
    title: str = Field(min_length=1)
    task_type: str = Field(min_length=1)
    description: Optional[str] = None
    volunteers_needed: int = Field(default=1, ge=1)
    date_needed: Optional[date] = None
    time_needed: Optional[time] = None
    duration_hours: Optional[Decimal] = Field(default=None, ge=0, max_digits=4, decimal_places=2)
    location: Optional[str] = None
    urgency_level: Urgency = Urgency.MEDIUM
