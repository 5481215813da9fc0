# shoplist/client/api_client.py
import requests

from shoplist.utils.retry import http_retry
from shoplist.utils.settings import API_BASE_URL
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)


class ApiClient:
    """Calls the service endpoints a client needs outside of cart storage."""

    def __init__(self, base_url: str | None = None, session_token: str | None = None, timeout: int = 3):
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if session_token:
            self.session.headers["Authorization"] = f"Bearer {session_token}"

    @http_retry()
    def get_plan(self) -> int:
        resp = self.session.get(f"{self.base_url}/user/plan", timeout=self.timeout)
        resp.raise_for_status()
        plan = resp.json().get("plan")
        return plan if isinstance(plan, int) else 0

    def set_plan(self, plan: int) -> int:
        resp = self.session.post(f"{self.base_url}/user/plan", json={"plan": plan}, timeout=self.timeout)
        resp.raise_for_status()
        stored = resp.json().get("plan")
        return stored if isinstance(stored, int) else plan

    def detect_currency(self) -> str | None:
        """Currency code for the caller's location, None when detection fails."""
        try:
            resp = self.session.get(f"{self.base_url}/location", timeout=self.timeout)
            resp.raise_for_status()
            return resp.json().get("currency") or None
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Error detecting currency: {e}")
            return None
