"""Test fixtures and sample data."""
import pytest
from datetime import date

from services.fact_store import FactStore
from tests.fixtures.mocks import FakeClock, FakeCredentialsProvider, posthog_row

ORG_ID = 42
OTHER_ORG_ID = 7
ENCRYPTION_KEY = "0123456789abcdef" * 4


def seed_posthog(store: FactStore, org_id: int, *dates: date) -> None:
    """Persist one posthog row per date so the cursor sits at max(dates)."""
    store.upsert_rows(org_id, "posthog", [posthog_row(d) for d in dates])


@pytest.fixture
def clock():
    """Fake clock fixed at 2024-05-15 13:00 London time."""
    return FakeClock()


@pytest.fixture
def store(session_factory):
    """FactStore bound to the in-memory test database."""
    return FactStore(session_factory=session_factory)


@pytest.fixture
def fake_credentials():
    """Credentials for every source of ORG_ID."""
    return FakeCredentialsProvider({
        (ORG_ID, "amazon"): {"client_id": "amzn", "client_secret": "s", "refresh_token": "r"},
        (ORG_ID, "facebook"): {"access_token": "fb", "ad_account_id": "act_1"},
        (ORG_ID, "posthog"): {"api_key": "phx", "project_id": "1"},
        (ORG_ID, "amazon_ads"): {"client_id": "ads", "client_secret": "s", "refresh_token": "r", "profile_id": "9"},
    })
