from shoplist.services.identity_client import IdentityClient
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

FREE_PLAN = 0


def _as_plan(value, default: int = FREE_PLAN) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


class PlanService:
    """
    Plan tier kept in the identity provider's private metadata.
    Only the server holds the key that can write it.
    """

    def __init__(self, identity: IdentityClient):
        self.identity = identity

    def get_or_init_plan(self, user_id: str) -> int:
        private = self.identity.get_private_metadata(user_id)

        if private.get("plan") is not None:
            return _as_plan(private["plan"])

        updated = self.identity.update_private_metadata(user_id, {"plan": FREE_PLAN})
        logger.info(f"Initialized plan of user {user_id} to {FREE_PLAN}")
        return _as_plan(updated.get("plan"))

    def set_plan(self, user_id: str, plan: int) -> int:
        updated = self.identity.update_private_metadata(user_id, {"plan": plan})
        logger.info(f"Plan of user {user_id} set to {plan}")
        return _as_plan(updated.get("plan"), default=plan)
