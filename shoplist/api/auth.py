# shoplist/api/auth.py
import requests
from fastapi import Depends, Header, HTTPException

from shoplist.services.identity_client import IdentityClient
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)


def get_identity_client() -> IdentityClient:
    return IdentityClient()


def get_current_user_id(
    authorization: str | None = Header(None),
    identity: IdentityClient = Depends(get_identity_client),
) -> str:
    """Resolves the bearer session token to a user id, 401 otherwise."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        user_id = identity.verify_session(token.strip())
    except requests.RequestException as e:
        logger.error(f"Session verification failed: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id
