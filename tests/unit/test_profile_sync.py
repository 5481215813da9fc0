"""
Unit tests for ProfileSync: first sign-in seeding, plan loading and
preference write-through.
"""
import pytest
import requests

from shoplist.client.local_store import LocalStore
from shoplist.client.profile_sync import ProfileState, ProfileSync
from shoplist.domain.schemas import AppSettings

from tests.conftest import USER_ID


class FakeApiClient:
    def __init__(self, plan=None, currency=None):
        self.plan = plan
        self.currency = currency
        self.fail_plan_post = False
        self.plan_gets = 0
        self.plan_posts = []

    def get_plan(self):
        self.plan_gets += 1
        if self.plan is None:
            raise requests.HTTPError("500 Server Error")
        return self.plan

    def set_plan(self, plan):
        if self.fail_plan_post:
            raise requests.ConnectionError("service unreachable")
        self.plan_posts.append(plan)
        self.plan = plan
        return plan

    def detect_currency(self):
        return self.currency


@pytest.fixture
def api() -> FakeApiClient:
    return FakeApiClient(plan=1)


@pytest.fixture
def local_store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "local")


@pytest.fixture
def sync(identity, api, local_store) -> ProfileSync:
    return ProfileSync(identity, api, local_store, detect_currency=False)


class TestFirstSignIn:

    def test_seeds_missing_currency_and_theme(self, sync, identity):
        # Act
        state = sync.on_user_change(USER_ID, ProfileState())

        # Assert
        assert identity.public_updates == [{"currency": "INR", "theme": "light"}]
        assert state == ProfileState(currency="INR", theme="light", plan=1)

    def test_existing_values_are_not_overwritten(self, sync, identity):
        # Arrange
        identity.users[USER_ID]["public_metadata"] = {"currency": "EUR", "theme": "dark"}

        # Act
        state = sync.on_user_change(USER_ID, ProfileState())

        # Assert
        assert identity.public_updates == []
        assert state.currency == "EUR"
        assert state.theme == "dark"

    def test_only_the_missing_key_is_seeded(self, sync, identity):
        identity.users[USER_ID]["public_metadata"] = {"currency": "GBP"}

        sync.on_user_change(USER_ID, ProfileState())

        assert identity.public_updates == [{"theme": "light"}]
        assert identity.users[USER_ID]["public_metadata"]["currency"] == "GBP"

    def test_detected_currency_is_used_for_seeding(self, identity, local_store):
        sync = ProfileSync(identity, FakeApiClient(plan=0, currency="JPY"), local_store)

        state = sync.on_user_change(USER_ID, ProfileState())

        assert state.currency == "JPY"
        assert identity.public_updates == [{"currency": "JPY", "theme": "light"}]

    def test_runs_once_per_user(self, sync, identity, api):
        first = sync.on_user_change(USER_ID, ProfileState())
        identity.users[USER_ID]["public_metadata"] = {}

        second = sync.on_user_change(USER_ID, first)

        assert second == first
        assert len(identity.public_updates) == 1
        assert api.plan_gets == 1
        assert sync.is_initialized(USER_ID)

    def test_failed_metadata_read_is_retried_later(self, sync, identity):
        identity.fail_reads = True

        state = sync.on_user_change(USER_ID, ProfileState(currency="USD"))

        assert state.currency == "USD"
        assert not sync.is_initialized(USER_ID)

        identity.fail_reads = False
        sync.on_user_change(USER_ID, state)

        assert sync.is_initialized(USER_ID)
        assert identity.public_updates == [{"currency": "INR", "theme": "light"}]

    def test_failed_seed_write_keeps_defaults(self, sync, identity):
        identity.fail_writes = True

        state = sync.on_user_change(USER_ID, ProfileState())

        assert state.currency == "INR"
        assert state.theme == "light"


class TestPlanLoading:

    def test_unreadable_plan_is_initialized_to_free(self, identity, local_store):
        api = FakeApiClient(plan=None)
        sync = ProfileSync(identity, api, local_store, detect_currency=False)

        state = sync.on_user_change(USER_ID, ProfileState())

        assert api.plan_posts == [0]
        assert state.plan == 0

    def test_failed_initialization_falls_back_to_free(self, identity, local_store):
        api = FakeApiClient(plan=None)
        api.fail_plan_post = True
        sync = ProfileSync(identity, api, local_store, detect_currency=False)

        state = sync.on_user_change(USER_ID, ProfileState(plan=3))

        assert state.plan == 0

    def test_guest_gets_local_settings_and_free_plan(self, sync, local_store, api):
        local_store.save_settings(AppSettings(currency="EUR", theme="dark"))

        state = sync.on_user_change(None, ProfileState(plan=1))

        assert state == ProfileState(currency="EUR", theme="dark", plan=0)
        assert api.plan_gets == 0


class TestWriteThrough:

    def test_currency_change_is_written(self, sync, identity):
        identity.users[USER_ID]["public_metadata"] = {"currency": "INR", "theme": "light"}

        state = sync.on_currency_change(USER_ID, "USD", ProfileState())

        assert state.currency == "USD"
        assert identity.public_updates == [{"currency": "USD"}]

    def test_unchanged_value_is_not_written(self, sync, identity):
        identity.users[USER_ID]["public_metadata"] = {"theme": "dark"}

        sync.on_theme_change(USER_ID, "dark", ProfileState())

        assert identity.public_updates == []

    def test_write_failure_keeps_local_state(self, sync, identity):
        identity.fail_writes = True

        state = sync.on_theme_change(USER_ID, "dark", ProfileState())

        assert state.theme == "dark"

    def test_unknown_theme_is_rejected(self, sync):
        with pytest.raises(ValueError):
            sync.on_theme_change(USER_ID, "sepia", ProfileState())

    def test_guest_changes_go_to_local_store(self, sync, local_store, identity):
        sync.on_currency_change(None, "EUR", ProfileState())
        sync.on_theme_change(None, "dark", ProfileState())

        assert local_store.load_settings() == AppSettings(currency="EUR", theme="dark")
        assert identity.public_updates == []

    def test_plan_is_not_touched_by_preferences(self, sync, identity):
        sync.on_currency_change(USER_ID, "USD", ProfileState())

        assert identity.private_updates == []


class TestForget:

    def test_forget_allows_reinitialization(self, sync, api):
        sync.on_user_change(USER_ID, ProfileState())
        sync.forget(USER_ID)

        sync.on_user_change(USER_ID, ProfileState())

        assert api.plan_gets == 2
