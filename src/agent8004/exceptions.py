"""
Agent8004 Exceptions Module

Discovery has to tell "this agent does not exist" apart from "the node could
not answer right now"; the hierarchy below encodes that split.

Exception Hierarchy:
    SDKError (Base Class)
    ├── ConfigurationError
    │   ├── UnsupportedNetworkError
    │   └── MissingContractAddressError
    ├── NetworkError
    │   ├── RPCError
    │   ├── TimeoutError
    │   └── RetryExhaustedError      transient: node unreachable after retries
    ├── ContractError
    │   ├── ContractCallError
    │   ├── ContractFunctionNotFoundError
    │   ├── EntityNotFoundError      permanent: read reverted as nonexistent
    │   └── TransactionFailedError
    ├── SignatureError
    │   ├── SignerNotAvailableError
    │   └── UserRejectedError
    └── DataError
        ├── InvalidHashError
        ├── MetadataLoadError
        └── InvalidFeedbackError
"""

from typing import Optional, Any


class SDKError(Exception):
    """
    Root of every error raised by agent8004.

    Attributes:
        code: Stable error code, e.g. "ENTITY_NOT_FOUND"
        details: Structured context (usually a dict)
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SDK_ERROR"
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {super().__str__()} - {self.details}"
        return f"[{self.code}] {super().__str__()}"


# ============ Configuration Exceptions ============


class ConfigurationError(SDKError):
    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class UnsupportedNetworkError(ConfigurationError):
    """Chain ID missing from the network table; raised before any RPC is built."""

    def __init__(self, chain_id: Any) -> None:
        super().__init__(
            f"Unsupported network: chain {chain_id}",
            details={"chain_id": chain_id},
        )
        self.code = "UNSUPPORTED_NETWORK"
        self.chain_id = chain_id


class MissingContractAddressError(ConfigurationError):
    """No registry address for the role ("identity" or "reputation")."""

    def __init__(self, contract_name: str) -> None:
        super().__init__(
            f"Contract address missing for '{contract_name}'",
            details={"contract": contract_name}
        )
        self.code = "MISSING_CONTRACT_ADDRESS"


# ============ Network Exceptions ============


class NetworkError(SDKError):
    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "NETWORK_ERROR", details)


class RPCError(NetworkError):
    """The JSON-RPC endpoint could not be reached (e.g. eth_chainId failed)."""

    def __init__(
        self,
        message: str,
        rpc_url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            details={"rpc_url": rpc_url, "method": method}
        )
        self.code = "RPC_ERROR"


class TimeoutError(NetworkError):
    """A feedback transaction was not mined within the receipt timeout."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            details={"operation": operation, "timeout": timeout_seconds}
        )
        self.code = "TIMEOUT_ERROR"


class RetryExhaustedError(NetworkError):
    """
    A chain read kept failing transiently through every attempt.

    Hydration maps this to UNAVAILABLE, never to "does not exist".

    Attributes:
        last_error: Exception from the final attempt
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Operation '{operation}' failed after {attempts} attempts",
            details={
                "operation": operation,
                "attempts": attempts,
                "last_error": str(last_error),
            }
        )
        self.code = "RETRY_EXHAUSTED"
        self.last_error = last_error


# ============ Contract Exceptions ============


class ContractError(SDKError):
    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "CONTRACT_ERROR", details)


class ContractCallError(ContractError):
    """
    A registry read or log query failed.

    ``reason`` carries the node's text (reverts are prefixed with
    "execution reverted") and is what the retry classifier inspects.
    """

    def __init__(
        self,
        contract: str,
        method: str,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Contract call failed: {contract}.{method}",
            details={"contract": contract, "method": method, "reason": reason}
        )
        self.code = "CONTRACT_CALL_FAILED"
        self.reason = reason


class ContractFunctionNotFoundError(ContractError):
    """The registry ABI has no method or event with that name and arity."""

    def __init__(
        self,
        contract: str,
        method: str,
        arity: Optional[int] = None,
    ) -> None:
        msg = f"Function '{method}' not found in contract '{contract}'"
        if arity is not None:
            msg += f" with arity {arity}"
        super().__init__(
            msg,
            details={"contract": contract, "method": method, "arity": arity}
        )
        self.code = "CONTRACT_FUNCTION_NOT_FOUND"


class EntityNotFoundError(ContractError):
    """
    A read reverted with a non-existence marker such as
    "ERC721: invalid token ID". Never retried.

    Attributes:
        operation: Label of the read, e.g. "ownerOf(3)"
        last_error: The exception the read raised
    """

    def __init__(
        self,
        operation: str,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Entity does not exist: {operation}",
            details={"operation": operation, "reason": str(last_error)}
        )
        self.code = "ENTITY_NOT_FOUND"
        self.operation = operation
        self.last_error = last_error


class TransactionFailedError(ContractError):
    """giveFeedback was refused by the node or mined with status 0."""

    def __init__(
        self,
        tx_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Transaction failed: {reason or 'unknown reason'}",
            details={"tx_id": tx_id, "reason": reason}
        )
        self.code = "TRANSACTION_FAILED"
        self.tx_id = tx_id


# ============ Signature Exceptions ============


class SignatureError(SDKError):
    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "SIGNATURE_ERROR", details)


class SignerNotAvailableError(SignatureError):
    def __init__(self, reason: str = "Signer not configured") -> None:
        super().__init__(reason)
        self.code = "SIGNER_NOT_AVAILABLE"


class UserRejectedError(SignatureError):
    """The wallet owner declined to sign; surfaced as-is, never retried."""

    def __init__(self, reason: str = "User rejected the request") -> None:
        super().__init__(f"User rejected: {reason}")
        self.code = "USER_REJECTED"
        self.reason = reason


# ============ Data Exceptions ============


class DataError(SDKError):
    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "DATA_ERROR", details)


class InvalidHashError(DataError):
    """A feedback hash that is not hex or does not fit in bytes32."""

    def __init__(self, value: str, expected_length: int = 32) -> None:
        super().__init__(
            f"Invalid hash format, expected {expected_length} bytes",
            details={"value": value[:20] + "..." if len(value) > 20 else value}
        )
        self.code = "INVALID_HASH"


class MetadataLoadError(DataError):
    """Every fetch attempt for an agent's metadata URI failed."""

    def __init__(self, uri: str, reason: Optional[str] = None) -> None:
        super().__init__(
            f"Failed to load metadata from '{uri}'",
            details={"uri": uri, "reason": reason}
        )
        self.code = "METADATA_LOAD_ERROR"
        self.reason = reason


class InvalidFeedbackError(DataError):
    """Score or agent ID rejected before any transaction is built."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.code = "INVALID_FEEDBACK"
