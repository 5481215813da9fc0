# shoplist/services/identity_client.py
import requests

from shoplist.utils.retry import http_retry
from shoplist.utils.settings import IDENTITY_SERVICE_URL, IDENTITY_SECRET_KEY
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)


class IdentityClient:
    """
    Client of the identity/profile provider.

    public metadata: user-writable preferences (currency, theme)
    private metadata: server-only values (plan), needs the secret key
    Reads are retried, writes are not.
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: int = 2):
        self.base_url = (base_url or IDENTITY_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

        key = IDENTITY_SECRET_KEY if api_key is None else api_key
        if key:
            self.session.headers["Authorization"] = f"Bearer {key}"

    @http_retry()
    def verify_session(self, token: str) -> str | None:
        """User id behind a session token, None when the session is not valid."""
        url = f"{self.base_url}/sessions/verify"
        resp = self.session.post(url, json={"token": token}, timeout=self.timeout)
        if resp.status_code in (401, 404):
            return None
        resp.raise_for_status()
        return resp.json().get("user_id")

    @http_retry()
    def get_user(self, user_id: str) -> dict:
        url = f"{self.base_url}/users/{user_id}"
        logger.info(f"IdentityClient GET {url}")

        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def get_public_metadata(self, user_id: str) -> dict:
        return dict(self.get_user(user_id).get("public_metadata") or {})

    def get_private_metadata(self, user_id: str) -> dict:
        return dict(self.get_user(user_id).get("private_metadata") or {})

    def update_public_metadata(self, user_id: str, changes: dict) -> dict:
        return self._patch_metadata(user_id, {"public_metadata": changes}).get("public_metadata") or {}

    def update_private_metadata(self, user_id: str, changes: dict) -> dict:
        return self._patch_metadata(user_id, {"private_metadata": changes}).get("private_metadata") or {}

    def _patch_metadata(self, user_id: str, payload: dict) -> dict:
        # the provider merges the given keys into the stored metadata
        url = f"{self.base_url}/users/{user_id}/metadata"
        logger.info(f"IdentityClient PATCH {url}")

        resp = self.session.patch(url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()
