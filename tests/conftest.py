import pytest

from spaserve._config import ENV_VARS


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    # Config reads the environment, so each test starts without these
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
