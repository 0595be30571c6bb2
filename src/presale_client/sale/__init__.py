from .pricing import PricingEngine, DEFAULT_TIERS, validate_tiers
from .approvals import ApprovalManager
from .ledger import PurchaseLedger
from .progress import SaleProgressMonitor
from .executor import PurchaseExecutor

__all__ = [
    "PricingEngine",
    "DEFAULT_TIERS",
    "validate_tiers",
    "ApprovalManager",
    "PurchaseLedger",
    "SaleProgressMonitor",
    "PurchaseExecutor",
]
