"""
Exception and Error Definitions Module

Defines the exception hierarchy for wallet sessions, pricing, approvals,
purchases and on-chain reads. All exceptions inherit from PresaleError for
unified handling; ``describe_error`` turns any of them into the
human-readable status line shown to the buyer.

Exception Hierarchy:
    PresaleError (root)
    ├── ConfigurationError
    ├── UnknownChainError
    ├── UnsupportedPaymentTokenError
    ├── ProviderRpcError
    ├── RpcError
    │   └── LogQueryError
    ├── WalletConnectionError
    ├── SecurityBlockError
    ├── NetworkMismatchError
    ├── PurchaseValidationError
    │   ├── InvalidPurchaseAmountError
    │   ├── SaleClosedError
    │   ├── InsufficientAllowanceError
    │   └── InsufficientBalanceError
    ├── TransactionError
    │   ├── TransactionRejectedError
    │   ├── TransactionRevertedError
    │   └── TransactionTimeoutError
    └── OperationCancelledError
"""

from typing import Any, Optional


# EIP-1193 / wallet vendor error codes
USER_REJECTED_REQUEST = 4001
UNAUTHORIZED = 4100
UNSUPPORTED_METHOD = 4200
UNRECOGNIZED_CHAIN = 4902
REQUEST_ALREADY_PENDING = -32002
INTERNAL_ERROR = -32603


class PresaleError(Exception):
    """
    Root exception class for all presale client exceptions.

    Subclasses set ``status_message``, the default line shown to the buyer
    when the exception carries no message of its own.
    """
    status_message = "Something went wrong"


class ConfigurationError(PresaleError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing private key for the local wallet provider
    - Pricing tiers that do not partition the supply for sale
    - No RPC endpoint available for a chain
    """
    status_message = "Presale client is misconfigured"


class UnknownChainError(PresaleError):
    """
    Raised when a chain id is not present in the ChainRegistry.

    Attributes:
        chain_id: The unregistered chain id
    """
    status_message = "Unsupported network"

    def __init__(self, chain_id: Any):
        self.chain_id = chain_id
        super().__init__(f"Chain {chain_id} is not registered")


class UnsupportedPaymentTokenError(PresaleError):
    """Raised when a payment token is not accepted on the selected chain."""
    status_message = "This payment token is not available on the selected network"


class ProviderRpcError(PresaleError):
    """
    Error reported by the wallet provider (EIP-1193).

    Attributes:
        code: Numeric provider error code (4001 rejected, 4902 unknown chain,
              -32002 request already pending, ...)
        data: Optional vendor payload
    """
    status_message = "Wallet request failed"

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        self.code = code
        self.data = data
        super().__init__(message)


class RpcError(PresaleError):
    """
    Raised when a direct JSON-RPC endpoint returns an error or is unreachable.

    Attributes:
        rpc_method: JSON-RPC method that was called (e.g., 'eth_call')
        code: JSON-RPC error code if the node returned one
    """
    status_message = "Could not read from the network"

    def __init__(self, message: str, rpc_method: Optional[str] = None, code: Optional[int] = None):
        self.rpc_method = rpc_method
        self.code = code
        super().__init__(message)


class LogQueryError(RpcError):
    """Raised when an event-log query for purchase history fails."""
    status_message = "Could not load your purchase history"


class WalletConnectionError(PresaleError):
    """
    Raised when the wallet cannot be connected.

    This includes scenarios such as:
    - No wallet provider present
    - The user rejected the account request
    - A connection request is already pending in the wallet
    - A wallet operation that needs a connected account was attempted
      while disconnected
    """
    status_message = "Wallet connection failed"


class SecurityBlockError(PresaleError):
    """
    Raised when an account matches the security blocklist.

    The session stays disconnected and no wallet state is recorded.

    Attributes:
        address: The blocked address
    """
    status_message = "Compromised wallet detected, please switch to a secure wallet"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Address {address} is blocklisted")


class NetworkMismatchError(PresaleError):
    """
    Raised when the wallet is connected to a chain other than the selected one.

    Attributes:
        expected_chain_id: Chain selected for the purchase
        actual_chain_id: Chain the wallet reports
    """
    status_message = "Please switch your wallet to the selected network"

    def __init__(self, expected_chain_id: int, actual_chain_id: Optional[int]):
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id
        super().__init__(
            f"Wallet is on chain {actual_chain_id}, purchase requires chain {expected_chain_id}"
        )


class PurchaseValidationError(PresaleError):
    """
    Base exception for purchase preconditions checked before submission.

    Nothing has been sent to the wallet when one of these is raised.
    """
    status_message = "Purchase cannot be submitted"


class InvalidPurchaseAmountError(PurchaseValidationError):
    """Raised when the requested token amount is below the minimum purchase."""
    status_message = "Purchase amount is below the minimum"


class SaleClosedError(PurchaseValidationError):
    """Raised when every tier of the schedule has been sold."""
    status_message = "The presale has sold out"


class InsufficientAllowanceError(PurchaseValidationError):
    """
    Raised when the presale contract may not spend enough of the payment token.

    Attributes:
        required: Allowance required (smallest units)
        available: Current allowance (smallest units)
    """
    status_message = "Please approve the payment token first"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Allowance {available} is below required {required}")


class InsufficientBalanceError(PurchaseValidationError):
    """
    Raised when the client-side balance check fails.

    Advisory only: balances are read before the transaction and may be stale.

    Attributes:
        required: Amount required (human units)
        available: Amount available (human units)
    """
    status_message = "Insufficient balance for this purchase"

    def __init__(self, symbol: str, required: Any, available: Any):
        self.symbol = symbol
        self.required = required
        self.available = available
        super().__init__(f"Insufficient {symbol}: need {required}, have {available}")


class TransactionError(PresaleError):
    """
    Base exception for submitted or attempted transactions.

    Attributes:
        tx_hash: Transaction hash if the transaction was submitted
    """
    status_message = "Transaction failed"

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class TransactionRejectedError(TransactionError):
    """Raised when the user declines to sign the transaction."""
    status_message = "Transaction was rejected in the wallet"


class TransactionRevertedError(TransactionError):
    """Raised when the receipt reports a failed (reverted) transaction."""
    status_message = "Transaction was reverted on-chain"


class TransactionTimeoutError(TransactionError):
    """
    Raised when no receipt was observed within the polling budget.

    This does not mean the transaction failed: it may still be mined.
    """
    status_message = "Confirmation timed out, check the block explorer before retrying"


class OperationCancelledError(PresaleError):
    """Raised when an in-flight operation is aborted by an account or chain change."""
    status_message = "Operation cancelled because the wallet changed account or network"


def describe_error(exc: BaseException) -> str:
    """
    Build the human-readable status line for an exception.

    Presale errors render as ``"<status_message>: <detail>"``; anything else
    is reported as an unexpected error.
    """
    if isinstance(exc, PresaleError):
        detail = str(exc)
        if detail and detail != exc.status_message:
            return f"{exc.status_message}: {detail}"
        return exc.status_message
    return f"Unexpected error: {exc}"
