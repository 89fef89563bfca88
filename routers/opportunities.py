from fastapi import APIRouter

from db import SessionDep
from schemas import OpportunityCreate
from services.directory import Directory
from services.opportunities import OpportunityBoard
from .auth import ShelterDep, VolunteerDep

router = APIRouter(tags=["volunteer-opportunities"])


@router.get("/volunteer-opportunities")
def list_opportunities(session: SessionDep):
    """
    Upcoming opportunities, most urgent first. Ones whose date and time
    have passed are left out.
    """
    return {"opportunities": OpportunityBoard(session).list_visible()}


@router.post("/volunteer-opportunities/{opportunity_id}/apply")
def apply_to_opportunity(opportunity_id: int, session: SessionDep, current: VolunteerDep):
    assigned, status = OpportunityBoard(session).apply(opportunity_id, current)
    return {
        "message": "Applied successfully",
        "volunteers_assigned": assigned,
        "status": status,
    }


@router.delete("/volunteer-opportunities/{opportunity_id}")
def delete_opportunity(opportunity_id: int, session: SessionDep, current: ShelterDep):
    shelter = Directory(session).shelter_for(current)
    OpportunityBoard(session).delete(opportunity_id, shelter.id, user_role=current.role.value)
    return {"message": "Opportunity deleted"}


@router.post("/shelter/volunteer-opportunities", status_code=201)
def create_opportunity(
    opportunity_in: OpportunityCreate, session: SessionDep, current: ShelterDep
):
    shelter = Directory(session).shelter_for(current)
    opportunity = OpportunityBoard(session).create(
        shelter_id=shelter.id,
        title=opportunity_in.title,
        task_type=opportunity_in.task_type,
        volunteers_needed=opportunity_in.volunteers_needed,
        date_needed=opportunity_in.date_needed,
        time_needed=opportunity_in.time_needed,
        duration_hours=opportunity_in.duration_hours,
        location=opportunity_in.location,
        urgency_level=opportunity_in.urgency_level.value,
        description=opportunity_in.description,
        user_role=current.role.value,
    )
    return {"message": "Opportunity created", "opportunity_id": opportunity.id}


@router.get("/shelter/volunteer-opportunities")
def list_my_opportunities(session: SessionDep, current: ShelterDep):
    shelter = Directory(session).shelter_for(current)
    return {"opportunities": OpportunityBoard(session).list_for_shelter(shelter.id)}


@router.get("/volunteer/tasks")
def list_my_tasks(session: SessionDep, current: VolunteerDep):
    """
    The caller's assignments. Ones whose opportunity has already taken
    place are marked Completed on the way out.
    """
    return {"tasks": OpportunityBoard(session).tasks_for_volunteer(current)}
