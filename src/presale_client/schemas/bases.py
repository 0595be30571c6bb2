"""
Base Schema Models for the Presale Client

This module defines the fundamental models shared across the presale client:
wallet state, transaction tracking, pricing quotes, purchase history and sale
progress. Every model inherits from CanonicalModel so that it can be rendered
deterministically for logging, caching or hand-off to a UI layer.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON output
    - WalletState: Connected account, chain and balances
    - PendingTransaction: Submitted approve/purchase transaction and its status
    - ApprovalState: One allowance observation for (token, owner, spender)
    - PricingTier: One price band of the presale schedule
    - Quote: Advisory cost of a purchase in USD and in the payment currency
    - PurchaseEvent: One decoded TokensPurchased log
    - PurchaseSummary: Aggregate of a buyer's purchase events
    - SaleProgress: Displayed tokens-sold figure against the sale target
    - PurchaseResult: Quote, confirmed transaction and refreshed history of a purchase

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
import time
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Ensures a deterministic JSON representation (sorted keys, no extra
    whitespace) so that two equal models always serialize identically.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        model_dump(mode="json") converts enums and Decimals to plain JSON
        types; json.dumps with sorted keys and compact separators does the rest.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class ConnectionStatus(str, Enum):
    """
    Wallet session connection states.

    Attributes:
        DISCONNECTED: No account authorized, WalletState empty
        CONNECTING: An account request is in flight
        CONNECTED: Account and chain recorded, provider events subscribed
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TransactionKind(str, Enum):
    """Kind of transaction submitted through the wallet."""
    APPROVE = "approve"
    PURCHASE = "purchase"


class TransactionStatus(str, Enum):
    """
    Enumeration of tracked transaction statuses.

    Attributes:
        PENDING: Submitted, no receipt observed yet
        CONFIRMED: Receipt observed with success status
        REVERTED: Receipt observed with failure status
        TIMED_OUT: Polling budget exhausted without a receipt. The on-chain
            outcome is unknown, the transaction may still be mined.
        CANCELLED: Polling aborted because the session changed account or chain
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class WalletState(CanonicalModel):
    """
    Snapshot of the connected wallet.

    Created on a successful connect, mutated by provider ``accountsChanged``
    and ``chainChanged`` events, and reset to the empty state on disconnect.

    Attributes:
        address: Connected account (None when disconnected)
        chain_id: Chain the wallet is currently connected to
        native_balance: Native asset balance in human units (ETH, BNB, ...)
        erc20_balances: Token symbol -> balance in human units
        is_holder_discount_eligible: Whether the account holds the discount NFT
        balances_loaded: Whether the balances above come from a completed read
    """
    address: Optional[str] = Field(None, description="Connected account address")
    chain_id: Optional[int] = Field(None, description="Chain id reported by the wallet")
    native_balance: Decimal = Field(default=Decimal(0), description="Native asset balance")
    erc20_balances: Dict[str, Decimal] = Field(default_factory=dict, description="Token balances by symbol")
    is_holder_discount_eligible: bool = Field(default=False, description="Holder NFT discount flag")
    balances_loaded: bool = Field(default=False, description="Set once a balance refresh completes")

    def is_empty(self) -> bool:
        return self.address is None

    def clear(self) -> None:
        """Reset every field to the disconnected state."""
        self.address = None
        self.chain_id = None
        self.native_balance = Decimal(0)
        self.erc20_balances = {}
        self.is_holder_discount_eligible = False
        self.balances_loaded = False


class PendingTransaction(CanonicalModel):
    """
    A transaction submitted through the wallet provider.

    Created at submission and discarded by callers once its status is
    terminal. TIMED_OUT is terminal for the client only: it records that
    confirmation could not be observed, not that the transaction failed.
    """
    hash: str = Field(..., description="Transaction hash (0x-prefixed)")
    kind: TransactionKind = Field(..., description="approve or purchase")
    chain_id: int = Field(..., description="Chain the transaction was submitted to")
    submitted_at: float = Field(default_factory=time.time, description="Unix submission time")
    status: TransactionStatus = Field(default=TransactionStatus.PENDING)
    block_number: Optional[int] = Field(None, description="Inclusion block, once confirmed or reverted")
    gas_used: Optional[int] = Field(None)

    def is_terminal(self) -> bool:
        return self.status != TransactionStatus.PENDING


class ApprovalState(CanonicalModel):
    """
    One allowance observation.

    Never cached beyond a single check/act cycle: the owner may change the
    allowance from outside this client at any time.
    """
    token: str
    owner: str
    spender: str
    allowance: int = Field(..., ge=0, description="Allowance in smallest token units")

    def sufficient_for(self, amount: int) -> bool:
        return self.allowance >= amount


class PricingTier(CanonicalModel):
    """
    One band of the presale price schedule.

    Covers cumulative-sold positions in ``[range_start, range_end)``.
    """
    model_config = ConfigDict(frozen=True)

    range_start: Decimal = Field(..., ge=0)
    range_end: Decimal = Field(..., gt=0)
    usd_price_per_token: Decimal = Field(..., gt=0)
    label: str = ""

    def contains(self, position: Decimal) -> bool:
        return self.range_start <= position < self.range_end


class Quote(CanonicalModel):
    """
    Advisory purchase cost.

    The presale contract is the pricing authority; for native-asset payments
    ``payment_amount`` includes an upward safety buffer.

    Attributes:
        token_amount: Presale tokens requested
        tier: Tier used for the undiscounted USD rate
        usd_cost: Cost in USD after any holder discount
        payment_symbol: Currency the buyer pays with
        payment_amount: Cost in human units of the payment currency
        payment_value: Cost in smallest units of the payment currency
        discount_applied: Whether the holder discount was applied
    """
    token_amount: Decimal
    tier: PricingTier
    usd_cost: Decimal
    payment_symbol: str
    payment_amount: Decimal
    payment_value: int
    discount_applied: bool = False


class PurchaseEvent(CanonicalModel):
    """One decoded ``TokensPurchased`` event log."""
    model_config = ConfigDict(frozen=True)

    buyer: str
    token_amount: Decimal = Field(..., description="Tokens bought, in human units")
    cost_in_payment_units: int = Field(..., description="Raw cost field as emitted")
    cost_usd: int = Field(..., description="Raw USD cost field as emitted")
    phase: int
    is_genesis_discount: bool
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


class VestingTranche(CanonicalModel):
    """One release milestone of the vesting schedule."""
    label: str
    months_after_launch: int
    percent: Decimal
    token_amount: Decimal


# Release milestones (months after launch, share of purchased tokens)
VESTING_MILESTONES = (
    ("Token launch", 0, Decimal("0.40")),
    ("3 months post-launch", 3, Decimal("0.40")),
    ("6 months post-launch", 6, Decimal("0.20")),
)


class PurchaseSummary(CanonicalModel):
    """
    Aggregate of a buyer's purchase events on one chain.

    ``total_tokens`` is the vesting-eligible amount. It only grows as more
    history is scanned and does not depend on the order of events.
    """
    buyer: str
    chain_id: int
    events: List[PurchaseEvent] = Field(default_factory=list)
    total_tokens: Decimal = Field(default=Decimal(0))

    @classmethod
    def from_events(cls, buyer: str, chain_id: int, events: List[PurchaseEvent]) -> "PurchaseSummary":
        total = sum((event.token_amount for event in events), Decimal(0))
        return cls(buyer=buyer, chain_id=chain_id, events=list(events), total_tokens=total)

    @property
    def purchase_count(self) -> int:
        return len(self.events)

    def vesting_schedule(self) -> List[VestingTranche]:
        return [
            VestingTranche(
                label=label,
                months_after_launch=months,
                percent=share * 100,
                token_amount=self.total_tokens * share,
            )
            for label, months, share in VESTING_MILESTONES
        ]


class SaleProgress(CanonicalModel):
    """
    Sale progress as displayed.

    Attributes:
        sold: Displayed tokens sold, never below the marketing floor
        actual_sold: Tokens sold as read from chain (None if the read failed)
        target: Total tokens offered
        percent_of_target: ``sold / target * 100`` capped at 100
        is_fallback: True when the on-chain read failed and the floor is shown
    """
    sold: Decimal
    actual_sold: Optional[Decimal] = None
    target: Decimal
    percent_of_target: Decimal
    is_fallback: bool = False


class PurchaseResult(CanonicalModel):
    """
    Outcome of a confirmed purchase.

    ``summary`` is the buyer's refreshed history, or None when the history
    query failed after confirmation.
    """
    quote: Quote
    transaction: PendingTransaction
    summary: Optional[PurchaseSummary] = None
