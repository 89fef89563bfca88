from dataclasses import dataclass
from typing import Dict, Optional, Type, Union

from sqlmodel import Session, SQLModel, select

from errors import ProfileNotFoundError
from models import Donor, Role, Shelter, User, Volunteer

Profile = Union[Donor, Volunteer, Shelter]

# Roles without an entry here (recipient, admin) have no profile table.
PROFILE_MODELS: Dict[Role, Type[SQLModel]] = {
    Role.DONOR: Donor,
    Role.VOLUNTEER: Volunteer,
    Role.SHELTER: Shelter,
}


@dataclass(frozen=True)
class Principal:
    """An authenticated caller as carried by the access token."""

    id: int
    role: Role


class Directory:
    """Maps an authenticated principal to its role profile row."""

    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def create_profile(self, user: User, **fields) -> Optional[Profile]:
        """
        Create the profile row that links a freshly registered user to its
        role table. Does not commit.
        """
        role = Role(user.role)
        model = PROFILE_MODELS.get(role)
        if model is None:
            return None

        phone = fields.get("phone")
        if model is Donor:
            profile = Donor(
                user_id=user.id,
                donor_name=user.name,
                email=user.email,
                phone=phone,
                address=fields.get("address"),
                donor_type=fields.get("donor_type"),
            )
        elif model is Volunteer:
            profile = Volunteer(
                user_id=user.id,
                volunteer_name=user.name,
                email=user.email,
                phone=phone,
                area_of_service=fields.get("area_of_service"),
            )
        else:
            profile = Shelter(
                user_id=user.id,
                shelter_name=user.name,
                email=user.email,
                phone=phone,
                location=fields.get("location"),
                capacity=fields.get("capacity") or 0,
            )
        self.session.add(profile)
        return profile

    def profile_for(self, principal: Principal) -> Profile:
        model = PROFILE_MODELS.get(principal.role)
        if model is None:
            raise ProfileNotFoundError(principal.role.value)
        profile = self.session.exec(
            select(model).where(model.user_id == principal.id)
        ).first()
        if profile is None:
            raise ProfileNotFoundError(principal.role.value)
        return profile

    def donor_for(self, principal: Principal) -> Donor:
        return self._expect(principal, Role.DONOR)

    def volunteer_for(self, principal: Principal) -> Volunteer:
        return self._expect(principal, Role.VOLUNTEER)

    def shelter_for(self, principal: Principal) -> Shelter:
        return self._expect(principal, Role.SHELTER)

    def _expect(self, principal: Principal, role: Role):
        if principal.role != role:
            raise ProfileNotFoundError(role.value)
        return self.profile_for(principal)
