"""
Volunteer opportunities and the assignments volunteers hold on them.

Expiry is derived, not stored: an opportunity's scheduled moment is its
``date_needed`` at ``time_needed`` (end of day when no time is set), and
once that moment is in the past the opportunity drops out of the public
listing and its assignments read as Completed. Both rules are pure
functions of ``now`` and the stored fields, so re-evaluating them is a
no-op.
"""
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from db import transaction
from errors import (
    AlreadyAppliedError,
    AlreadyFullError,
    NotFoundError,
    NotOpenError,
    ValidationError,
)
from models import (
    URGENCY_RANK,
    AssignmentStatus,
    OpportunityStatus,
    Shelter,
    Urgency,
    VolunteerAssignment,
    VolunteerOpportunity,
    parse_urgency,
)
from services.audit import record_audit
from services.directory import Directory, Principal

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59)


def scheduled_moment(opportunity: VolunteerOpportunity) -> Optional[datetime]:
    if opportunity.date_needed is None:
        return None
    return datetime.combine(opportunity.date_needed, opportunity.time_needed or END_OF_DAY)


def has_elapsed(opportunity: VolunteerOpportunity, now: datetime) -> bool:
    moment = scheduled_moment(opportunity)
    return moment is not None and moment < now


def _listing_order(opportunities: List[VolunteerOpportunity]) -> List[VolunteerOpportunity]:
    # Newest first, then a stable sort by urgency rank and date (undated first).
    newest_first = sorted(
        opportunities, key=lambda o: (o.created_at, o.id or 0), reverse=True
    )
    return sorted(
        newest_first,
        key=lambda o: (
            URGENCY_RANK.get(o.urgency_level, len(URGENCY_RANK) + 1),
            o.date_needed is not None,
            o.date_needed or date.min,
        ),
    )


class OpportunityBoard:
    def __init__(self, session: Session):
        self.session = session
        self.directory = Directory(session)

    def create(
        self,
        shelter_id: int,
        title: str,
        task_type: str,
        volunteers_needed: int = 1,
        date_needed: Optional[date] = None,
        time_needed: Optional[time] = None,
        duration_hours: Optional[Decimal] = None,
        location: Optional[str] = None,
        urgency_level: str = Urgency.MEDIUM.value,
        description: Optional[str] = None,
        user_role: Optional[str] = None,
    ) -> VolunteerOpportunity:
        if not title or not task_type:
            raise ValidationError("title and task_type are required")
        if volunteers_needed < 1:
            raise ValidationError("volunteers_needed must be at least 1")
        try:
            urgency_level = parse_urgency(urgency_level)
        except ValueError as exc:
            raise ValidationError(f"Unknown urgency level: {urgency_level}") from exc

        opportunity = VolunteerOpportunity(
            shelter_id=shelter_id,
            title=title,
            description=description,
            task_type=task_type,
            volunteers_needed=volunteers_needed,
            volunteers_assigned=0,
            date_needed=date_needed,
            time_needed=time_needed,
            duration_hours=duration_hours,
            location=location,
            urgency_level=urgency_level,
            status=OpportunityStatus.OPEN.value,
        )
        with transaction(self.session):
            self.session.add(opportunity)
            self.session.flush()
            record_audit(
                self.session,
                action_type="CREATE",
                table_name="VolunteerOpportunity",
                record_id=opportunity.id,
                user_role=user_role,
                description=f"{title} ({volunteers_needed} needed)",
            )
        logger.info("Shelter %s posted opportunity %s", shelter_id, opportunity.id)
        return opportunity

    def lock(self, opportunity_id: int) -> VolunteerOpportunity:
        opportunity = self.session.exec(
            select(VolunteerOpportunity)
            .where(VolunteerOpportunity.id == opportunity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if opportunity is None:
            raise NotFoundError("Opportunity not found")
        return opportunity

    def delete(
        self, opportunity_id: int, owner_shelter_id: int, user_role: Optional[str] = None
    ) -> None:
        with transaction(self.session):
            opportunity = self.session.get(VolunteerOpportunity, opportunity_id)
            if opportunity is None or opportunity.shelter_id != owner_shelter_id:
                raise NotFoundError("Opportunity not found")
            self.session.delete(opportunity)
            record_audit(
                self.session,
                action_type="DELETE",
                table_name="VolunteerOpportunity",
                record_id=opportunity_id,
                user_role=user_role,
            )
        logger.info("Shelter %s deleted opportunity %s", owner_shelter_id, opportunity_id)

    def apply(self, opportunity_id: int, principal: Principal) -> Tuple[int, str]:
        """
        Assign the calling volunteer to an opportunity.

        Returns ``(volunteers_assigned, status)``. The capacity check, the
        duplicate check, the new assignment and the counter update share
        one transaction with the opportunity row locked.
        """
        with transaction(self.session):
            volunteer = self.directory.volunteer_for(principal)
            opportunity = self.lock(opportunity_id)

            if opportunity.volunteers_assigned >= opportunity.volunteers_needed:
                raise AlreadyFullError()
            if opportunity.status != OpportunityStatus.OPEN.value:
                raise NotOpenError()

            existing = self.session.exec(
                select(VolunteerAssignment).where(
                    VolunteerAssignment.opportunity_id == opportunity.id,
                    VolunteerAssignment.volunteer_id == volunteer.id,
                )
            ).first()
            if existing is not None:
                raise AlreadyAppliedError()

            self.session.add(
                VolunteerAssignment(
                    opportunity_id=opportunity.id,
                    volunteer_id=volunteer.id,
                    status=AssignmentStatus.ASSIGNED.value,
                )
            )
            opportunity.volunteers_assigned += 1
            if opportunity.volunteers_assigned >= opportunity.volunteers_needed:
                opportunity.status = OpportunityStatus.FILLED.value
            self.session.add(opportunity)

            try:
                self.session.flush()
            except IntegrityError as exc:
                # unique_assignment caught a concurrent duplicate
                raise AlreadyAppliedError() from exc

            record_audit(
                self.session,
                action_type="APPLY",
                table_name="VolunteerOpportunity",
                record_id=opportunity.id,
                user_role=principal.role.value,
                description=(
                    f"Volunteer {volunteer.id} assigned "
                    f"({opportunity.volunteers_assigned}/{opportunity.volunteers_needed})"
                ),
            )
            assigned, status = opportunity.volunteers_assigned, opportunity.status

        logger.info(
            "Volunteer %s applied to opportunity %s (%s, %s assigned)",
            principal.id,
            opportunity_id,
            status,
            assigned,
        )
        return assigned, status

    def sweep(self, now: Optional[datetime] = None, volunteer_id: Optional[int] = None) -> int:
        """
        Mark assignments whose opportunity has already happened as Completed.

        Returns how many assignments changed; a second run with the same
        ``now`` changes nothing.
        """
        now = now or datetime.now()
        query = (
            select(VolunteerAssignment, VolunteerOpportunity)
            .join(
                VolunteerOpportunity,
                col(VolunteerAssignment.opportunity_id) == VolunteerOpportunity.id,
            )
            .where(
                VolunteerAssignment.status == AssignmentStatus.ASSIGNED.value,
                col(VolunteerOpportunity.date_needed).is_not(None),
            )
        )
        if volunteer_id is not None:
            query = query.where(VolunteerAssignment.volunteer_id == volunteer_id)

        completed = 0
        with transaction(self.session):
            for assignment, opportunity in self.session.exec(query).all():
                if has_elapsed(opportunity, now):
                    assignment.status = AssignmentStatus.COMPLETED.value
                    self.session.add(assignment)
                    completed += 1
        if completed:
            logger.info("Marked %s assignment(s) completed", completed)
        return completed

    def list_visible(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Opportunities that have not yet taken place, in listing order, each
        with the posting shelter's name, location and phone.
        """
        now = now or datetime.now()
        self.sweep(now)
        rows = self.session.exec(
            select(VolunteerOpportunity, Shelter.shelter_name, Shelter.location, Shelter.phone)
            .join(Shelter, col(VolunteerOpportunity.shelter_id) == Shelter.id)
            .where(
                col(VolunteerOpportunity.status).in_(
                    [OpportunityStatus.OPEN.value, OpportunityStatus.FILLED.value]
                )
            )
        ).all()
        shelters = {
            opportunity.id: (name, location, phone)
            for opportunity, name, location, phone in rows
        }
        visible = _listing_order(
            [opportunity for opportunity, *_ in rows if not has_elapsed(opportunity, now)]
        )
        return [
            {
                **opportunity.model_dump(),
                "shelter_name": shelters[opportunity.id][0],
                "shelter_location": shelters[opportunity.id][1],
                "shelter_phone": shelters[opportunity.id][2],
            }
            for opportunity in visible
        ]

    def list_for_shelter(self, shelter_id: int) -> List[VolunteerOpportunity]:
        return list(
            self.session.exec(
                select(VolunteerOpportunity)
                .where(VolunteerOpportunity.shelter_id == shelter_id)
                .order_by(
                    col(VolunteerOpportunity.created_at).desc(),
                    col(VolunteerOpportunity.id).desc(),
                )
            ).all()
        )

    def tasks_for_volunteer(
        self, principal: Principal, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        volunteer = self.directory.volunteer_for(principal)
        self.sweep(now, volunteer_id=volunteer.id)
        rows = self.session.exec(
            select(VolunteerAssignment, VolunteerOpportunity, Shelter.shelter_name)
            .join(
                VolunteerOpportunity,
                col(VolunteerAssignment.opportunity_id) == VolunteerOpportunity.id,
            )
            .join(Shelter, col(VolunteerOpportunity.shelter_id) == Shelter.id)
            .where(VolunteerAssignment.volunteer_id == volunteer.id)
            .order_by(col(VolunteerAssignment.assigned_at).desc(), col(VolunteerAssignment.id).desc())
        ).all()
        return [
            {
                "assignment_id": assignment.id,
                "opportunity_id": opportunity.id,
                "title": opportunity.title,
                "task_type": opportunity.task_type,
                "shelter_name": shelter_name,
                "date_needed": opportunity.date_needed,
                "time_needed": opportunity.time_needed,
                "location": opportunity.location,
                "assigned_at": assignment.assigned_at,
                "status": assignment.status,
            }
            for assignment, opportunity, shelter_name in rows
        ]
