import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from callrelay.core.config import Settings
from callrelay.main import create_app
from callrelay.services.atz_client import AtzClient

ATZ_BASE_URL = "https://atz.test/v1"


def make_settings(**overrides) -> Settings:
    values = {
        "atz_enable": True,
        "atz_base_url": ATZ_BASE_URL,
        "atz_api_token": "test-token",
        "atz_owner_id": None,
        "atz_owner_map": {},
        "atz_custom_field_key": "Zadarma Call Log",
        "atz_list_users_on_boot": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def atz_mock():
    with respx.mock(base_url=ATZ_BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture()
def atz_client(atz_mock):
    return AtzClient(ATZ_BASE_URL, token="test-token", http_client=httpx.AsyncClient(base_url=ATZ_BASE_URL))


@pytest.fixture()
def client(settings, atz_mock):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
