"""
High-level entry point combining the REST and WebSocket clients

PacificaSDK resolves the private key once and shares the resulting signer
and one HTTP transport between all clients.
"""

import logging
from typing import Any, Callable, Optional, Union

from .clients.api_client import ApiClient
from .clients.sign_client import SignClient
from .config.settings import PacificaConfig
from .crypto.keys import KeyMaterial, RawKey
from .signing.signer import RequestSigner
from .transport.http import HttpTransport
from .transport.websocket import WebSocketClient

logger = logging.getLogger(__name__)


class PacificaSDK:
    """
    Facade over ApiClient, SignClient and WebSocketClient.

    Args:
        private_key: Account key (or agent key); omit for public data only
        config: SDK configuration, defaults to ``PacificaConfig.from_env()``
        transport: Shared HTTP transport
        ws_connector: Replacement for ``websockets.connect``

    Example:
        >>> sdk = PacificaSDK(private_key)
        >>> sdk.api.get_prices()
        >>> sdk.sign.create_limit_order({"symbol": "BTC", "side": "bid", "amount": "0.1", "price": "50000"})
    """

    def __init__(self, private_key: Optional[Union[RawKey, KeyMaterial]] = None,
                 config: Optional[PacificaConfig] = None,
                 transport: Optional[HttpTransport] = None,
                 ws_connector: Optional[Callable[..., Any]] = None):
        self.config = config or PacificaConfig.from_env()
        self.config.apply_logging()
        self.transport = transport or HttpTransport(self.config)

        self.signer: Optional[RequestSigner] = None
        if private_key is not None:
            self.signer = RequestSigner(
                private_key,
                account=self.config.account_public_key,
                expiry_window=self.config.expiry_window,
            )

        self.api = ApiClient(self.config, self.transport)
        self.sign = SignClient(config=self.config, transport=self.transport,
                               signer=self.signer) if self.signer else None
        self.ws = WebSocketClient(
            self.config.websocket_config(),
            signer=self.signer,
            agent_wallet=self.config.agent_wallet_public_key,
            connector=ws_connector,
        )

        logger.info(
            f"Initialized Pacifica SDK for {self.config.base_url}"
            + (f" (account {self.signer.account})" if self.signer else " (public only)")
        )

    @property
    def account(self) -> Optional[str]:
        return self.signer.account if self.signer else None

    def close(self) -> None:
        """Close the HTTP session; call ``await sdk.ws.disconnect()`` for the socket."""
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def create_sdk(private_key: Optional[Union[RawKey, KeyMaterial]] = None, **config_overrides: Any) -> PacificaSDK:
    """
    Build a PacificaSDK from the environment plus keyword overrides.

    Example:
        >>> sdk = create_sdk(key, base_url="https://test-api.pacifica.fi", retry_attempts=5)
    """
    config = PacificaConfig.from_env(**config_overrides)
    return PacificaSDK(private_key, config=config)
