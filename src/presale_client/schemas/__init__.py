from .bases import (
    CanonicalModel,
    ConnectionStatus,
    TransactionKind,
    TransactionStatus,
    WalletState,
    PendingTransaction,
    ApprovalState,
    PricingTier,
    Quote,
    PurchaseEvent,
    PurchaseSummary,
    VestingTranche,
    SaleProgress,
    PurchaseResult,
)

__all__ = [
    "CanonicalModel",
    "ConnectionStatus",
    "TransactionKind",
    "TransactionStatus",
    "WalletState",
    "PendingTransaction",
    "ApprovalState",
    "PricingTier",
    "Quote",
    "PurchaseEvent",
    "PurchaseSummary",
    "VestingTranche",
    "SaleProgress",
    "PurchaseResult",
]
