from typing import Optional
from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field
from sqlmodel import Session

from shopcart.core.config import settings
from shopcart.db.session import get_session
from shopcart.models.user import IdentitySummary, User
from shopcart.services.session import SessionIssuer
from shopcart.services.transitions import IdentityTransitions, TransitionResult

router = APIRouter()

# Browsers send the credential as a cookie, API clients may send it as a bearer token
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login", auto_error=False)

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"


class SignupIn(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)
    name: Optional[str] = Field(default=None, min_length=2)


class LoginIn(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class MessageOut(BaseModel):
    success: bool = True
    message: str


def get_session_issuer(session: Session = Depends(get_session)) -> SessionIssuer:
    return SessionIssuer(session)


def get_transitions(session: Session = Depends(get_session)) -> IdentityTransitions:
    return IdentityTransitions(session)


def read_token(request: Request, bearer: Optional[str] = Depends(oauth2_scheme_optional)) -> Optional[str]:
    return request.cookies.get(settings.TOKEN_COOKIE_NAME) or bearer


def get_current_user(
    token: Optional[str] = Depends(read_token),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> User:
    return issuer.resolve(token)


def set_session_cookies(response: Response, result: TransitionResult) -> None:
    response.set_cookie(
        settings.TOKEN_COOKIE_NAME,
        result.access_token,
        max_age=settings.TOKEN_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    if result.guest_id:
        response.set_cookie(
            settings.GUEST_COOKIE_NAME,
            result.guest_id,
            max_age=settings.GUEST_COOKIE_MAX_AGE,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
        )
    else:
        response.delete_cookie(settings.GUEST_COOKIE_NAME)


@router.post("/signup", response_model=IdentitySummary, status_code=status.HTTP_201_CREATED)
def signup(
    data: SignupIn,
    response: Response,
    guest_id: Optional[str] = Cookie(default=None, alias=settings.GUEST_COOKIE_NAME),
    transitions: IdentityTransitions = Depends(get_transitions),
):
    result = transitions.signup(data.email, data.password, name=data.name, guest_id=guest_id)
    set_session_cookies(response, result)
    return IdentitySummary.from_user(result.user)


@router.post("/login", response_model=IdentitySummary)
def login(
    data: LoginIn,
    response: Response,
    guest_id: Optional[str] = Cookie(default=None, alias=settings.GUEST_COOKIE_NAME),
    transitions: IdentityTransitions = Depends(get_transitions),
):
    result = transitions.login(data.email, data.password, guest_id=guest_id)
    set_session_cookies(response, result)
    return IdentitySummary.from_user(result.user)


@router.post("/guest", response_model=IdentitySummary)
def continue_as_guest(response: Response, transitions: IdentityTransitions = Depends(get_transitions)):
    result = transitions.continue_as_guest()
    set_session_cookies(response, result)
    return IdentitySummary.from_user(result.user)


@router.post("/logout", response_model=MessageOut)
def logout(
    response: Response,
    token: Optional[str] = Depends(read_token),
    transitions: IdentityTransitions = Depends(get_transitions),
):
    transitions.logout(token)
    response.delete_cookie(settings.TOKEN_COOKIE_NAME)
    response.delete_cookie(settings.GUEST_COOKIE_NAME)
    return MessageOut(message="Logged out successfully")


@router.get("/me", response_model=IdentitySummary)
def read_user_me(current_user: User = Depends(get_current_user)):
    """
    Get current identity.
    """
    return IdentitySummary.from_user(current_user)
