import pytest

from api_client import MarketplaceAPI
from helpers import BASE_URL, FakeSession


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def api(session: FakeSession) -> MarketplaceAPI:
    return MarketplaceAPI(BASE_URL, timeout=5, session=session)
