"""
Hardware wallet signing through the Solana CLI

The canonical message is handed to ``solana sign-offchain-message`` in a
child process; the device prompts the user and the CLI prints the base58
signature as its last line of output. Envelope construction is shared
with RequestSigner.
"""

import logging
import subprocess
from typing import Any, Callable, List, Mapping, Optional, Union

from ..exceptions import SigningError
from .signer import AccountLike, BaseRequestSigner
from .types import OperationType, SignedEnvelope
from .utils import DEFAULT_EXPIRY_WINDOW

SOLANA_CLI = "solana"
APPROVAL_PROMPT = "Please approve"
DEFAULT_SIGNING_TIMEOUT = 120.0


class HardwareWalletSigner(BaseRequestSigner):
    """
    Signs requests on a hardware wallet (e.g. ``usb://ledger?key=1``).

    Args:
        wallet_path: Keypair URL understood by the Solana CLI
        account: Account address of the hardware key
        expiry_window: Default expiry window
        runner: Replacement for ``subprocess.run``
        cli_path: Solana CLI executable
        timeout: Seconds to wait for the user to approve on the device
    """

    def __init__(self, wallet_path: str, account: AccountLike,
                 expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW,
                 runner: Optional[Callable[..., Any]] = None,
                 cli_path: str = SOLANA_CLI,
                 timeout: float = DEFAULT_SIGNING_TIMEOUT,
                 timestamp_generator: Optional[Callable[[], int]] = None,
                 logger: Optional[logging.Logger] = None):
        if not wallet_path:
            raise SigningError("Hardware wallet path cannot be empty")
        super().__init__(
            account=account,
            expiry_window=expiry_window,
            timestamp_generator=timestamp_generator,
            logger=logger or logging.getLogger(__name__),
        )
        self.wallet_path = wallet_path
        self.runner = runner or subprocess.run
        self.cli_path = cli_path
        self.timeout = timeout

    def build_command(self, message: str) -> List[str]:
        # Argument list, no shell: the message is passed verbatim
        return [self.cli_path, "sign-offchain-message", "-k", self.wallet_path, message]

    def sign_canonical(self, message: str) -> str:
        self.logger.info(f"Requesting hardware wallet signature from {self.wallet_path}")
        try:
            result = self.runner(
                self.build_command(message),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise SigningError(f"Solana CLI not found: {self.cli_path}") from e
        except subprocess.TimeoutExpired as e:
            raise SigningError(
                f"Hardware wallet did not respond within {self.timeout} seconds"
            ) from e

        stderr = (result.stderr or "").strip()
        if result.returncode != 0:
            raise SigningError(
                f"Hardware wallet signing failed: {stderr or f'exit code {result.returncode}'}",
                details={'returncode': result.returncode}
            )
        if stderr and APPROVAL_PROMPT not in stderr:
            raise SigningError(f"Hardware wallet signing failed: {stderr}")

        lines = [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]
        if not lines:
            raise SigningError("No signature returned from hardware wallet")
        return lines[-1]

    def __repr__(self) -> str:
        return f"HardwareWalletSigner(account={self.account!r}, wallet_path={self.wallet_path!r})"


def sign_request_with_hardware_wallet(operation: Union[str, OperationType],
                                      payload: Optional[Mapping[str, Any]],
                                      account: AccountLike, wallet_path: str,
                                      expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW,
                                      runner: Optional[Callable[..., Any]] = None) -> SignedEnvelope:
    """Sign a single request on a hardware wallet."""
    signer = HardwareWalletSigner(wallet_path, account, expiry_window=expiry_window, runner=runner)
    return signer.sign(operation, payload)
