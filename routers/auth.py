from typing import Annotated, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from config import Settings
from db import SessionDep, transaction
from errors import AuthError, AuthorizationError, EmailTakenError, NotFoundError
from models import Role, User
from schemas import LoginData, RefreshData, UserCreate, UserRead
from services.audit import record_audit
from services.directory import Directory, Principal
from services.tokens import TokenService

router = APIRouter(tags=["auth"])

bearer = HTTPBearer(auto_error=False)

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_token_service(session: SessionDep, settings: SettingsDep) -> TokenService:
    return TokenService(session, settings)


TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


def get_current_principal(
    tokens: TokenServiceDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Principal:
    """
    Reads the bearer token from the Authorization header and returns the
    principal it was issued to. Raises 401 if missing / invalid / expired.
    """
    if credentials is None:
        raise AuthError("Missing token")
    return tokens.verify_access(credentials.credentials)


CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]


def require_role(*roles: Role) -> Callable[..., Principal]:
    """Build a dependency that admits only principals holding one of ``roles``."""

    allowed = frozenset(roles)

    def dependency(principal: CurrentPrincipalDep) -> Principal:
        if principal.role not in allowed:
            raise AuthorizationError(
                f"{' or '.join(r.value for r in roles).capitalize()} access required"
            )
        return principal

    return dependency


DonorDep = Annotated[Principal, Depends(require_role(Role.DONOR))]
VolunteerDep = Annotated[Principal, Depends(require_role(Role.VOLUNTEER))]
ShelterDep = Annotated[Principal, Depends(require_role(Role.SHELTER))]
RecipientDep = Annotated[Principal, Depends(require_role(Role.RECIPIENT))]


@router.post("/auth/register", status_code=201)
def register(user_in: UserCreate, session: SessionDep, tokens: TokenServiceDep):
    """
    Register a new user, create the profile row for its role and issue
    the first token pair, all in one transaction.
    """
    directory = Directory(session)
    try:
        with transaction(session):
            if directory.get_user_by_email(user_in.email) is not None:
                raise EmailTakenError()

            user = User(
                name=user_in.name,
                email=user_in.email,
                password_hash=hash_password(user_in.password),
                role=user_in.role.value,
            )
            session.add(user)
            session.flush()

            directory.create_profile(
                user,
                **user_in.model_dump(
                    include={
                        "phone",
                        "address",
                        "donor_type",
                        "area_of_service",
                        "location",
                        "capacity",
                    }
                ),
            )
            pair = tokens.issue(user.id, user_in.role)
            record_audit(
                session,
                action_type="REGISTER",
                table_name="Users",
                record_id=user.id,
                user_role=user.role,
            )
            user_out = UserRead.model_validate(user)
    except IntegrityError as exc:
        # lost a race with another registration for the same email
        raise EmailTakenError() from exc

    return {"message": "Registered", "user": user_out, **pair.to_dict()}


@router.post("/auth/login")
def login(payload: LoginData, session: SessionDep, tokens: TokenServiceDep):
    user = Directory(session).get_user_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthError("Invalid credentials")

    user_out = UserRead.model_validate(user)
    with transaction(session):
        pair = tokens.issue(user_out.user_id, user_out.role)

    return {"message": "Logged in", "user": user_out, **pair.to_dict()}


@router.post("/auth/refresh")
def refresh(payload: RefreshData, tokens: TokenServiceDep):
    """Rotate a refresh token: the presented one stops working."""
    return tokens.rotate(payload.refreshToken).to_dict()


@router.post("/auth/logout")
def logout(payload: RefreshData, tokens: TokenServiceDep):
    """
    Forget a refresh token. Reports success whether or not it was known.
    """
    tokens.revoke(payload.refreshToken)
    return {"message": "Logged out"}


@router.get("/me")
def read_me(session: SessionDep, current: CurrentPrincipalDep):
    """
    Get info about the currently authenticated user.
    """
    user = Directory(session).get_user(current.id)
    if user is None:
        raise NotFoundError("User not found")
    return {"user": UserRead.model_validate(user)}
