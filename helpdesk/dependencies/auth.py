from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from helpdesk.core.config import Settings, get_settings
from helpdesk.identity import Actor, Role

bearer_scheme = HTTPBearer(auto_error=False)


def _actor_from_claims(claims: dict[str, Any], request: Request) -> Actor:
    try:
        user_id = int(claims["user_id"])
        role = Role(str(claims["role"]).strip().lower())
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials") from exc
    branch_id = claims.get("branch_id")
    return Actor(
        user_id=user_id,
        role=role,
        branch_id=None if branch_id is None else int(branch_id),
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def get_current_actor(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Actor:
    """Resolve the caller from a static token table.

    Stands in for the identity provider: tokens are configured through
    ``AUTH_TOKENS`` as ``{"token": {"user_id": 1, "role": "operator", "branch_id": 3}}``.
    """

    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    claims = settings.auth_tokens.get(credentials.credentials)
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return _actor_from_claims(claims, request)


def role_required(*roles: Role) -> Callable[[Actor], Actor]:
    """Dependency factory ensuring the current actor holds one of ``roles``."""

    allowed = frozenset(roles)

    async def dependency(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return actor

    return dependency


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
StaffActor = Annotated[Actor, Depends(role_required(Role.SUPERVISOR, Role.ADMIN))]
AdminActor = Annotated[Actor, Depends(role_required(Role.ADMIN))]
