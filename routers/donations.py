from fastapi import APIRouter

from db import SessionDep
from schemas import DonationCreate
from services.donations import DonationRecorder
from .auth import DonorDep

router = APIRouter(tags=["donations"])


@router.post("/donations", status_code=201)
def create_donation(donation_in: DonationCreate, session: SessionDep, current: DonorDep):
    """
    Offer food without targeting a request. No match is created.
    """
    result = DonationRecorder(session).fulfill(
        current,
        food_type=donation_in.foodType,
        quantity=donation_in.quantity,
        unit=donation_in.unit,
        expiry_date=donation_in.expiryDate,
        pickup_location=donation_in.pickupLocation,
        notes=donation_in.notes,
    )
    return {"message": "Donation recorded", "donationId": result.donation_id}


@router.delete("/donations/{donation_id}")
def delete_donation(donation_id: int, session: SessionDep, current: DonorDep):
    DonationRecorder(session).delete(donation_id, current)
    return {"message": "Donation deleted"}


@router.get("/donor/donations")
def list_my_donations(session: SessionDep, current: DonorDep):
    return {"donations": DonationRecorder(session).list_for_donor(current)}
