from fastapi import APIRouter

from db import SessionDep, transaction
from models import Request
from schemas import DonationCreate, RequestCreate
from services.audit import record_audit
from services.directory import Directory
from services.donations import DonationRecorder
from services.ledger import RequestLedger
from .auth import DonorDep, ShelterDep

router = APIRouter(tags=["requests"])


@router.get("")
def list_requests(session: SessionDep):
    """
    Public board of requests still accepting donations (Open or Matched).
    """
    return {"requests": RequestLedger(session).list_open()}


@router.get("/{request_id}", response_model=Request)
def get_request(request_id: int, session: SessionDep):
    return RequestLedger(session).get(request_id)


@router.post("", status_code=201)
def create_request(request_in: RequestCreate, session: SessionDep, current: ShelterDep):
    shelter = Directory(session).shelter_for(current)
    ledger = RequestLedger(session)
    with transaction(session):
        request = ledger.create(
            shelter_id=shelter.id,
            request_type=request_in.request_type,
            quantity=request_in.quantity,
            unit=request_in.unit,
            urgency_level=request_in.urgency_level.value,
            description=request_in.description,
        )
        record_audit(
            session,
            action_type="CREATE",
            table_name="Request",
            record_id=request.id,
            user_role=current.role.value,
            description=f"{request.quantity} {request.unit} of {request.request_type}",
        )
    session.refresh(request)
    return {"message": "Request created", "request": request}


@router.delete("/{request_id}")
def delete_request(request_id: int, session: SessionDep, current: ShelterDep):
    """
    Delete one of the caller's own requests; its matches go with it.
    """
    shelter = Directory(session).shelter_for(current)
    with transaction(session):
        RequestLedger(session).delete(request_id, shelter.id)
        record_audit(
            session,
            action_type="DELETE",
            table_name="Request",
            record_id=request_id,
            user_role=current.role.value,
        )
    return {"message": "Request deleted"}


@router.post("/{request_id}/fulfill", status_code=201)
def fulfill_request(
    request_id: int,
    donation_in: DonationCreate,
    session: SessionDep,
    current: DonorDep,
):
    """
    Donate against a request. Partial donations leave the request Matched
    with the remainder; a donation covering the rest marks it Fulfilled.
    """
    result = DonationRecorder(session).fulfill(
        current,
        request_id=request_id,
        food_type=donation_in.foodType,
        quantity=donation_in.quantity,
        unit=donation_in.unit,
        expiry_date=donation_in.expiryDate,
        pickup_location=donation_in.pickupLocation,
        notes=donation_in.notes,
    )
    return {
        "message": "Donation recorded",
        "donationId": result.donation_id,
        "requestStatus": result.request_status,
        "remainingQuantity": result.remaining_quantity,
    }
