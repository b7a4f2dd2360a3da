"""
Unit tests for the PacificaSDK facade
"""

from unittest.mock import MagicMock

import pytest

from pacifica_sdk import PacificaSDK, PacificaConfig, create_sdk
from pacifica_sdk.transport.http import HttpTransport

from .conftest import RFC8032_SECRET_HEX


@pytest.fixture
def transport():
    mock = MagicMock(spec=HttpTransport)
    mock.post.return_value = {'success': True}
    return mock


class TestPacificaSDK:
    """Test cases for PacificaSDK"""

    def test_clients_share_signer_and_transport(self, transport):
        config = PacificaConfig(builder_code="B1", agent_wallet_public_key="AGENT")
        transport.config = config
        sdk = PacificaSDK(RFC8032_SECRET_HEX, config=config, transport=transport)

        assert sdk.api.transport is transport
        assert sdk.sign.transport is transport
        assert sdk.sign.signer is sdk.signer
        assert sdk.ws.signer is sdk.signer
        assert sdk.ws.agent_wallet == "AGENT"
        assert sdk.ws.builder_code == "B1"
        assert sdk.account == sdk.signer.public_key

    def test_public_only(self, transport):
        sdk = PacificaSDK(config=PacificaConfig(), transport=transport)
        assert sdk.sign is None
        assert sdk.account is None

    def test_account_override_for_agent_key(self, transport):
        main = "11111111111111111111111111111111"
        sdk = PacificaSDK(RFC8032_SECRET_HEX, config=PacificaConfig(account_public_key=main),
                          transport=transport)
        assert sdk.account == main

    def test_context_manager_closes_transport(self, transport):
        with PacificaSDK(config=PacificaConfig(), transport=transport):
            pass
        transport.close.assert_called_once()

    def test_create_sdk_uses_overrides(self, monkeypatch):
        monkeypatch.setenv("PACIFICA_TIMEOUT", "12")
        sdk = create_sdk(RFC8032_SECRET_HEX, retry_attempts=7)
        try:
            assert sdk.config.timeout == 12.0
            assert sdk.config.retry_attempts == 7
            assert sdk.transport.policy.max_retries == 7
        finally:
            sdk.close()
