"""Unit tests for API key checks and open paths."""

import pytest
from pydantic import SecretStr

from sitedoc.api.middleware.auth import api_key_accepted, is_open_path
from sitedoc.config.settings import Settings


class TestApiKeyAccepted:
    def test_configured_key(self):
        settings = Settings(_env_file=None, API_SECRET_KEY=SecretStr("k-1"))

        assert api_key_accepted("k-1", settings) is True
        assert api_key_accepted("k-2", settings) is False

    def test_no_key_accepts_any_token_in_debug(self):
        settings = Settings(_env_file=None, DEBUG=True)

        assert api_key_accepted("anything", settings) is True
        assert api_key_accepted("", settings) is False

    def test_no_key_rejects_outside_debug(self):
        """Test a deployment without a key refuses every token."""
        settings = Settings(_env_file=None, DEBUG=False)

        assert api_key_accepted("anything", settings) is False


@pytest.mark.parametrize(
    ("path", "is_open"),
    [
        ("/health", True),
        ("/health/ready", True),
        ("/metrics", True),
        ("/docs/oauth2-redirect", True),
        ("/v1/reports", False),
        ("/healthz", False),
    ],
)
def test_open_paths(path, is_open):
    assert is_open_path(path) is is_open
