import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, select

from db import transaction
from errors import ConflictError, NotFoundError, ValidationError
from models import Donation, DonationStatus, Donor, Match, Request, Shelter
from services.audit import record_audit
from services.directory import Directory, Principal
from services.ledger import RequestLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FulfillmentResult:
    donation_id: int
    request_status: Optional[str] = None
    remaining_quantity: Optional[Decimal] = None


def format_quantity(quantity: Decimal, unit: str) -> str:
    return f"{quantity} {unit}"


class DonationRecorder:
    """Records donations and links them to the requests they fulfill."""

    def __init__(self, session: Session):
        self.session = session
        self.directory = Directory(session)
        self.ledger = RequestLedger(session)

    def fulfill(
        self,
        principal: Principal,
        food_type: str,
        quantity: Decimal,
        unit: str,
        pickup_location: str,
        request_id: Optional[int] = None,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> FulfillmentResult:
        """
        Record a donation and, when a request is targeted, apply it.

        Everything happens in one transaction: the donation, its match and
        the request's new quantity/status are committed together or not at
        all. Without ``request_id`` this is a standalone donation with no
        match.
        """
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0")

        with transaction(self.session):
            donor = self.directory.donor_for(principal)

            request: Optional[Request] = None
            if request_id is not None:
                request = self.ledger.lock(request_id)
                self.ledger.check_fulfillable(request, unit)

            donation = Donation(
                donor_id=donor.id,
                shelter_id=request.shelter_id if request is not None else None,
                food_type=food_type,
                quantity=format_quantity(quantity, unit),
                expiry_date=expiry_date,
                location=pickup_location,
                notes=notes,
                status=DonationStatus.PENDING.value,
            )
            self.session.add(donation)
            self.session.flush()

            if request is None:
                record_audit(
                    self.session,
                    action_type="DONATE",
                    table_name="Donation",
                    record_id=donation.id,
                    user_role=principal.role.value,
                    description=f"Donor {donor.id} offered {donation.quantity} of {food_type}",
                )
                result = FulfillmentResult(donation_id=donation.id)
            else:
                self._link(donation, request)
                new_quantity, new_status = self.ledger.apply_fulfillment(
                    request.id, quantity, unit
                )
                record_audit(
                    self.session,
                    action_type="FULFILL",
                    table_name="Request",
                    record_id=request.id,
                    user_role=principal.role.value,
                    description=(
                        f"Donation {donation.id} ({donation.quantity}) applied; "
                        f"request now {new_status}"
                    ),
                )
                result = FulfillmentResult(
                    donation_id=donation.id,
                    request_status=new_status,
                    remaining_quantity=new_quantity,
                )

        logger.info(
            "Donor %s recorded donation %s (request %s -> %s)",
            principal.id,
            result.donation_id,
            request_id,
            result.request_status,
        )
        return result

    def _link(self, donation: Donation, request: Request) -> Match:
        match = Match(donation_id=donation.id, request_id=request.id)
        self.session.add(match)
        self.session.flush()
        return match

    def delete(self, donation_id: int, principal: Principal) -> None:
        with transaction(self.session):
            donor = self.directory.donor_for(principal)
            donation = self.session.get(Donation, donation_id)
            if donation is None or donation.donor_id != donor.id:
                raise NotFoundError("Donation not found")
            if donation.status != DonationStatus.PENDING.value:
                raise ConflictError("Only pending donations can be deleted")

            self.session.delete(donation)
            record_audit(
                self.session,
                action_type="DELETE",
                table_name="Donation",
                record_id=donation_id,
                user_role=principal.role.value,
            )
        logger.info("Donor %s deleted donation %s", principal.id, donation_id)

    def list_for_donor(self, principal: Principal) -> List[Dict[str, Any]]:
        donor: Donor = self.directory.donor_for(principal)
        rows = self.session.exec(
            select(Donation, Shelter.shelter_name)
            .join(Shelter, col(Donation.shelter_id) == Shelter.id, isouter=True)
            .where(Donation.donor_id == donor.id)
            .order_by(col(Donation.donated_at).desc(), col(Donation.id).desc())
        ).all()
        return [
            {**donation.model_dump(), "shelter_name": shelter_name}
            for donation, shelter_name in rows
        ]
