# shoplist/api/routers/plan.py
import requests
from fastapi import APIRouter, Depends, HTTPException

from shoplist.api.auth import get_current_user_id, get_identity_client
from shoplist.domain.schemas import PlanIn, PlanOut
from shoplist.services.identity_client import IdentityClient
from shoplist.services.plan_service import PlanService
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


def get_plan_service(identity: IdentityClient = Depends(get_identity_client)) -> PlanService:
    return PlanService(identity)


@router.get("/plan", response_model=PlanOut)
def get_plan(
    user_id: str = Depends(get_current_user_id),
    service: PlanService = Depends(get_plan_service),
):
    """Current plan; a user without one is initialized to the free plan."""
    try:
        return PlanOut(plan=service.get_or_init_plan(user_id))
    except requests.RequestException as e:
        logger.error(f"Failed to get/set plan of user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/plan", response_model=PlanOut)
def set_plan(
    payload: PlanIn,
    user_id: str = Depends(get_current_user_id),
    service: PlanService = Depends(get_plan_service),
):
    try:
        return PlanOut(plan=service.set_plan(user_id, payload.plan))
    except requests.RequestException as e:
        logger.error(f"Failed to update plan of user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
