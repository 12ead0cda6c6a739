# app/api/dependencies/identity.py
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.identity import Identity, Permissions
from app.services.persistence_gateway import PersistenceGateway
from app.services.session_facade import SessionFacade


async def resolve_identity(db: AsyncSession, user_id: Optional[int]) -> Optional[Identity]:
    """
    Load the stored user behind an id and build the caller identity from it.

    Returns None when no such user exists.
    """
    if user_id is None:
        return None
    user = await PersistenceGateway(db).get_user(user_id)
    if user is None:
        return None
    return Identity(
        user_id=user.id,
        company_id=user.company_id,
        permissions=Permissions.from_stored(user.permissions),
    )


async def get_current_identity(
    x_user_id: Optional[int] = Header(
        default=None,
        alias="X-User-Id",
        description="Id of the already-authenticated caller, set by the upstream auth layer.",
    ),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """
    Dependency resolving the caller of a request.

    Rules
    -----
    - Header missing            -> 401
    - Header names unknown user -> 401
    - Otherwise the identity carries the user's stored capability flags.
    """
    identity = await resolve_identity(db, x_user_id)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-User-Id header.",
        )
    return identity


def require_permission(capability: str) -> Callable:
    """
    Dependency factory rejecting callers without `capability` with 403.
    """

    async def _check(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not identity.permissions.allows(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission '{capability}'.",
            )
        return identity

    return _check


async def get_origin_connection(
    x_connection_id: Optional[str] = Header(
        default=None,
        alias="X-Connection-Id",
        description="WebSocket connection id of the caller; its own agenda broadcasts are skipped.",
    ),
) -> Optional[str]:
    return x_connection_id


async def get_session_facade(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SessionFacade:
    return SessionFacade(PersistenceGateway(db), request.app.state.room_hub)
