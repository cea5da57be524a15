"""
Agent8004 Signer Module

Signing capability used by the feedback write path.

Classes:
    Signer: Abstract base class for signers
    LocalAccountSigner: EVM signer backed by an eth-account private key

Functions:
    is_user_rejection: Recognise wallet-level rejections

Example:
    >>> from agent8004.signer import LocalAccountSigner
    >>> signer = LocalAccountSigner(private_key="0x...")
    >>> signer.get_address()
    '0x...'

Note:
    - Wallet integrations implement Signer and raise UserRejectedError when
      the owner declines a request
    - Rejections are never retried
"""

from typing import Any

from eth_account import Account

from .exceptions import SignerNotAvailableError, UserRejectedError

USER_REJECTED_CODE = 4001

_REJECTION_MARKERS = ("action_rejected", "user rejected", "user denied")


def is_user_rejection(error: BaseException) -> bool:
    """
    Determine if an error is a wallet-level rejection.

    Matches UserRejectedError, an EIP-1193 code of 4001 (on ``code`` or in
    the first argument's dict form), or a rejection phrase in the message.

    Example:
        >>> is_user_rejection(Exception("MetaMask: User denied transaction signature"))
        True
    """
    if isinstance(error, UserRejectedError):
        return True
    code = getattr(error, "code", None)
    if code == USER_REJECTED_CODE or code == "ACTION_REJECTED":
        return True
    if error.args and isinstance(error.args[0], dict):
        if error.args[0].get("code") == USER_REJECTED_CODE:
            return True
    text = str(error).lower()
    return any(marker in text for marker in _REJECTION_MARKERS)


class Signer:
    """
    Abstract base class for signers.

    Methods:
        get_address: Get the signer's address
        sign_tx: Sign a transaction dict
    """

    def get_address(self) -> str:
        raise NotImplementedError

    def sign_tx(self, unsigned_tx: Any) -> Any:
        """
        Sign an unsigned transaction.

        Args:
            unsigned_tx: Transaction dict as produced by web3 build_transaction

        Returns:
            Signed transaction exposing ``raw_transaction``

        Raises:
            UserRejectedError: The owner declined the request
        """
        raise NotImplementedError


class LocalAccountSigner(Signer):
    """
    EVM signer holding a private key in memory.

    Args:
        private_key: Hex private key, with or without 0x prefix

    Raises:
        SignerNotAvailableError: The key is missing or malformed
    """

    def __init__(self, private_key: str) -> None:
        if not private_key:
            raise SignerNotAvailableError("Private key not configured")
        key = private_key if private_key.startswith("0x") else "0x" + private_key
        try:
            self._account = Account.from_key(key)
        except (ValueError, TypeError) as exc:
            raise SignerNotAvailableError(f"Invalid private key: {exc}") from exc

    @property
    def address(self) -> str:
        return self._account.address

    def get_address(self) -> str:
        return self._account.address

    def sign_tx(self, unsigned_tx: Any) -> Any:
        return self._account.sign_transaction(unsigned_tx)
