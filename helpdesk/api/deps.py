from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from helpdesk.core.cache import get_cache
from helpdesk.core.exceptions import NotFoundError
from helpdesk.core.security import verify_token
from helpdesk.db import SessionDep
from helpdesk.schemas.user import UserIdentity
from helpdesk.services.ticket_lifecycle import TicketLifecycleService
from helpdesk.services.ticket_store import TicketStore
from helpdesk.services.user_directory import UserDirectory

# Tokens are issued by the identity provider, not by this service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_user_directory(session: SessionDep) -> UserDirectory:
    return UserDirectory(session, cache=get_cache())


def get_ticket_service(
    session: SessionDep,
    directory: UserDirectory = Depends(get_user_directory),
) -> TicketLifecycleService:
    return TicketLifecycleService(TicketStore(session), directory)


def get_current_user(
    directory: UserDirectory = Depends(get_user_directory),
    token: str = Depends(oauth2_scheme),
) -> UserIdentity:
    try:
        payload = verify_token(token, token_type="access")
        user_id = payload.get("sub")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return directory.authenticate(UUID(user_id))
    except (ValueError, NotFoundError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive or missing user",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
