from fastapi import APIRouter

from helpdesk.dependencies.auth import CurrentActor

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/me", summary="Echo the authenticated caller")
async def whoami(actor: CurrentActor) -> dict[str, object]:
    return {"status": "ok", "user_id": actor.user_id, "role": actor.role.value, "branch_id": actor.branch_id}
