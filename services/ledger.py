import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, col, select

from errors import (
    AlreadyFulfilledError,
    NotFoundError,
    UnitMismatchError,
    ValidationError,
)
from models import Request, RequestStatus, Shelter, Urgency, parse_urgency

logger = logging.getLogger(__name__)


def units_match(expected: str, got: str) -> bool:
    return expected.strip().lower() == got.strip().lower()


def _urgency(value: str) -> str:
    try:
        return parse_urgency(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown urgency level: {value}") from exc


class RequestLedger:
    """
    Owns the shelter Request lifecycle: Open -> Matched -> Fulfilled.

    ``quantity`` always holds the remaining unfulfilled amount. Methods here
    never commit; callers run them inside ``db.transaction``.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        shelter_id: int,
        request_type: str,
        quantity: Decimal,
        unit: str,
        urgency_level: str = Urgency.MEDIUM.value,
        description: Optional[str] = None,
    ) -> Request:
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0")
        if not request_type or not unit:
            raise ValidationError("request_type and unit are required")

        request = Request(
            shelter_id=shelter_id,
            request_type=request_type,
            quantity=quantity,
            unit=unit,
            urgency_level=_urgency(urgency_level),
            status=RequestStatus.OPEN.value,
            description=description,
        )
        self.session.add(request)
        self.session.flush()
        logger.info("Shelter %s opened request %s", shelter_id, request.id)
        return request

    def get(self, request_id: int) -> Request:
        request = self.session.get(Request, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def lock(self, request_id: int) -> Request:
        """Load a request row with a write lock held until the transaction ends."""
        request = self.session.exec(
            select(Request)
            .where(Request.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def delete(self, request_id: int, owner_shelter_id: int) -> None:
        request = self.session.get(Request, request_id)
        # Someone else's request is reported exactly like a missing one.
        if request is None or request.shelter_id != owner_shelter_id:
            raise NotFoundError("Request not found")
        self.session.delete(request)
        self.session.flush()
        logger.info("Shelter %s deleted request %s", owner_shelter_id, request_id)

    def check_fulfillable(self, request: Request, donated_unit: str) -> None:
        if request.status == RequestStatus.FULFILLED.value:
            raise AlreadyFulfilledError()
        if not units_match(request.unit, donated_unit):
            raise UnitMismatchError(request.unit, donated_unit)

    def apply_fulfillment(
        self, request_id: int, donated_quantity: Decimal, donated_unit: str
    ) -> Tuple[Decimal, str]:
        """
        Debit a donation from a request's remaining quantity.

        Returns ``(new_quantity, new_status)``. A donation that covers the
        rest closes the request at zero; anything less leaves it Matched
        with the reduced quantity.
        """
        request = self.lock(request_id)
        self.check_fulfillable(request, donated_unit)

        remaining = Decimal(request.quantity) - Decimal(donated_quantity)
        if remaining <= 0:
            request.quantity = Decimal("0")
            request.status = RequestStatus.FULFILLED.value
        else:
            request.quantity = remaining
            request.status = RequestStatus.MATCHED.value

        self.session.add(request)
        self.session.flush()
        logger.info(
            "Request %s is now %s with %s %s remaining",
            request.id,
            request.status,
            request.quantity,
            request.unit,
        )
        return request.quantity, request.status

    def list_open(self) -> List[Dict[str, Any]]:
        """Requests still taking donations, each with its shelter's name."""
        rows = self.session.exec(
            select(Request, Shelter.shelter_name)
            .join(Shelter, col(Request.shelter_id) == Shelter.id)
            .where(
                col(Request.status).in_(
                    [RequestStatus.OPEN.value, RequestStatus.MATCHED.value]
                )
            )
            .order_by(col(Request.requested_at).desc(), col(Request.id).desc())
        ).all()
        return [
            {**request.model_dump(), "shelter_name": shelter_name}
            for request, shelter_name in rows
        ]

    def list_for_shelter(self, shelter_id: int) -> List[Request]:
        return list(
            self.session.exec(
                select(Request)
                .where(Request.shelter_id == shelter_id)
                .order_by(col(Request.requested_at).desc(), col(Request.id).desc())
            ).all()
        )
