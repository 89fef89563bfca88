from fastapi import APIRouter
from sqlmodel import col, select

from db import SessionDep
from models import Shelter
from services.directory import Directory
from services.ledger import RequestLedger
from .auth import RecipientDep, ShelterDep

router = APIRouter(tags=["shelters"])

PUBLIC_FIELDS = (
    Shelter.id,
    Shelter.shelter_name,
    Shelter.location,
    Shelter.phone,
    Shelter.email,
    Shelter.capacity,
    Shelter.current_occupancy,
    Shelter.food_stock_status,
)


def _rows(result) -> list:
    return [dict(row._mapping) for row in result]


@router.get("/shelters")
def list_shelters(session: SessionDep):
    """
    List all shelters (public directory).
    """
    result = session.exec(
        select(*PUBLIC_FIELDS).order_by(col(Shelter.shelter_name))
    ).all()
    return {"shelters": _rows(result)}


@router.get("/recipient/shelters")
def list_shelters_with_space(session: SessionDep, current: RecipientDep):
    """
    Shelters that still have room, grouped by location.
    """
    result = session.exec(
        select(
            Shelter.id,
            Shelter.shelter_name,
            Shelter.location,
            Shelter.capacity,
            Shelter.current_occupancy,
        )
        .where(col(Shelter.current_occupancy) < col(Shelter.capacity))
        .order_by(col(Shelter.location))
    ).all()
    return {"shelters": _rows(result)}


@router.get("/shelter/requests")
def list_my_requests(session: SessionDep, current: ShelterDep):
    shelter = Directory(session).shelter_for(current)
    return {"requests": RequestLedger(session).list_for_shelter(shelter.id)}
