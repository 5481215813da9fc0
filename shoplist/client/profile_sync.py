# shoplist/client/profile_sync.py
from dataclasses import dataclass, replace
from typing import Optional

import requests

from shoplist.client.api_client import ApiClient
from shoplist.client.local_store import LocalStore
from shoplist.services.identity_client import IdentityClient
from shoplist.services.plan_service import FREE_PLAN
from shoplist.utils.settings import DEFAULT_CURRENCY
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

THEMES = ("light", "dark", "system")


@dataclass(frozen=True)
class ProfileState:
    currency: str = DEFAULT_CURRENCY
    theme: str = "light"
    plan: int = FREE_PLAN


class ProfileSync:
    """
    Keeps currency, theme and plan in step between the identity provider and
    the client.

    on_user_change() runs the first-sign-in reconciliation at most once per
    user id for the lifetime of this object; preference changes are written
    through with on_currency_change() / on_theme_change().
    """

    def __init__(
        self,
        identity: IdentityClient,
        api: ApiClient,
        local_store: LocalStore,
        default_theme: str = "light",
        default_currency: str = DEFAULT_CURRENCY,
        detect_currency: bool = True,
    ):
        self.identity = identity
        self.api = api
        self.local_store = local_store
        self.default_theme = default_theme
        self.default_currency = default_currency
        self.detect_currency = detect_currency
        self._initialized = set()

    def is_initialized(self, user_id: str) -> bool:
        return user_id in self._initialized

    def forget(self, user_id: str) -> None:
        self._initialized.discard(user_id)

    def on_user_change(self, user_id: Optional[str], state: ProfileState) -> ProfileState:
        if not user_id:
            settings = self.local_store.load_settings()
            return replace(state, currency=settings.currency, theme=settings.theme, plan=FREE_PLAN)

        if user_id in self._initialized:
            return state

        currency, theme = state.currency, state.theme
        try:
            metadata = self.identity.get_public_metadata(user_id)
        except requests.RequestException as e:
            logger.error(f"Failed to read metadata of user {user_id}: {e}")
            metadata = None

        if metadata is not None:
            currency, theme = self._seed_metadata(user_id, metadata)

        plan = self._load_plan(user_id)

        # a failed read is retried on the next user change
        if metadata is not None:
            self._initialized.add(user_id)

        return ProfileState(currency=currency, theme=theme, plan=plan)

    def _seed_metadata(self, user_id: str, metadata: dict):
        missing = {}

        currency = metadata.get("currency")
        if not isinstance(currency, str) or not currency:
            currency = self._default_currency()
            missing["currency"] = currency

        theme = metadata.get("theme")
        if theme not in THEMES:
            theme = self.default_theme
            missing["theme"] = theme

        if missing:
            try:
                self.identity.update_public_metadata(user_id, missing)
                logger.info(f"Seeded {sorted(missing)} for user {user_id}")
            except requests.RequestException as e:
                logger.error(f"Failed to initialize metadata of user {user_id}: {e}")

        return currency, theme

    def _default_currency(self) -> str:
        detected = self.api.detect_currency() if self.detect_currency else None
        return detected or self.default_currency

    def _load_plan(self, user_id: str) -> int:
        try:
            return self.api.get_plan()
        except requests.HTTPError as e:
            logger.warning(f"Plan of user {user_id} not readable, initializing: {e}")
        except requests.RequestException as e:
            logger.error(f"Failed to get plan of user {user_id}: {e}")
            return FREE_PLAN

        try:
            return self.api.set_plan(FREE_PLAN)
        except requests.RequestException as e:
            logger.error(f"Failed to set default plan of user {user_id}: {e}")
            return FREE_PLAN

    def on_currency_change(self, user_id: Optional[str], currency: str, state: ProfileState) -> ProfileState:
        self._write_through(user_id, "currency", currency)
        return replace(state, currency=currency)

    def on_theme_change(self, user_id: Optional[str], theme: str, state: ProfileState) -> ProfileState:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self._write_through(user_id, "theme", theme)
        return replace(state, theme=theme)

    def _write_through(self, user_id: Optional[str], key: str, value: str) -> None:
        if not user_id:
            settings = self.local_store.load_settings()
            self.local_store.save_settings(settings.model_copy(update={key: value}))
            return

        try:
            metadata = self.identity.get_public_metadata(user_id)
            if metadata.get(key) != value:
                self.identity.update_public_metadata(user_id, {key: value})
        except requests.RequestException as e:
            logger.error(f"Failed to update {key} in metadata of user {user_id}: {e}")
