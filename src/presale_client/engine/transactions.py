"""
Transaction submission and receipt polling.

Approvals and purchases go through the same two steps: submit through the
wallet provider (``eth_sendTransaction``), then poll
``eth_getTransactionReceipt`` until a receipt appears, the polling budget is
exhausted, or the session cancels the wait.
"""

import logging
from typing import Any, Dict, Optional

from ..providers.bases import WalletProvider
from ..schemas.bases import PendingTransaction, TransactionKind, TransactionStatus
from ..evm.codec import hex_to_int
from .cancellation import CancellationToken
from .exceptions import (
    OperationCancelledError,
    ProviderRpcError,
    TransactionError,
    TransactionRejectedError,
    TransactionRevertedError,
    TransactionTimeoutError,
    USER_REJECTED_REQUEST,
)

logger = logging.getLogger(__name__)

#: Receipt polling budget: 60 attempts, 2 seconds apart
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 60


def receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    """Interpret a receipt ``status`` given as int, bool or hex string."""
    status = receipt.get("status")
    if isinstance(status, bool):
        return status
    if isinstance(status, int):
        return status == 1
    if isinstance(status, str):
        return hex_to_int(status) == 1 if status.lower().startswith("0x") else status == "1"
    return False


class TransactionSubmitter:
    """Sends transactions through the wallet provider."""

    def __init__(self, provider: WalletProvider):
        self._provider = provider

    async def submit(self, tx_request: Dict[str, Any], kind: TransactionKind, chain_id: int) -> PendingTransaction:
        """
        Ask the wallet to sign and broadcast ``tx_request``.

        Args:
            tx_request: ``eth_sendTransaction`` params object (from, to, data, value)
            kind: approve or purchase
            chain_id: Chain the wallet is connected to

        Returns:
            PendingTransaction: Tracking record with status PENDING

        Raises:
            TransactionRejectedError: The user declined to sign (code 4001)
            TransactionError: Any other provider failure before a hash was issued
        """
        try:
            tx_hash = await self._provider.request("eth_sendTransaction", [tx_request])
        except ProviderRpcError as e:
            if e.code == USER_REJECTED_REQUEST:
                logger.info("%s transaction rejected in wallet", kind.value)
                raise TransactionRejectedError(str(e)) from e
            raise TransactionError(f"Could not submit {kind.value} transaction: {e}") from e

        logger.info("Submitted %s transaction %s on chain %s", kind.value, tx_hash, chain_id)
        return PendingTransaction(hash=tx_hash, kind=kind, chain_id=chain_id)


class ReceiptPoller:
    """
    Bounded receipt polling with cooperative cancellation.

    Example:
        poller = ReceiptPoller(provider)
        receipt = await poller.wait_for_receipt(pending, cancellation=session.cancellation)
    """

    def __init__(
        self,
        provider: WalletProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._provider = provider
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def wait_for_receipt(
        self,
        pending: PendingTransaction,
        cancellation: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Poll until ``pending`` has a receipt.

        Updates ``pending.status`` in place. A timeout leaves the on-chain
        outcome unresolved (TIMED_OUT), it does not mark the transaction failed.

        Returns:
            Dict[str, Any]: The success receipt

        Raises:
            TransactionRevertedError: Receipt reports failure
            TransactionTimeoutError: No receipt within the polling budget
            OperationCancelledError: The session changed account or chain
        """
        token = cancellation or CancellationToken()
        try:
            for attempt in range(1, self.max_attempts + 1):
                token.raise_if_cancelled()
                receipt = await self._fetch_receipt(pending.hash)
                if receipt:
                    return self._resolve(pending, receipt)
                logger.debug("No receipt for %s (attempt %d/%d)", pending.hash, attempt, self.max_attempts)
                await token.sleep(self.poll_interval)
        except OperationCancelledError:
            pending.status = TransactionStatus.CANCELLED
            logger.info("Stopped waiting for %s: %s", pending.hash, token.reason)
            raise

        pending.status = TransactionStatus.TIMED_OUT
        logger.warning("Transaction %s not confirmed after %d attempts", pending.hash, self.max_attempts)
        raise TransactionTimeoutError(
            f"Transaction {pending.hash} was not confirmed after {self.max_attempts} attempts",
            tx_hash=pending.hash,
        )

    async def _fetch_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._provider.request("eth_getTransactionReceipt", [tx_hash])
        except ProviderRpcError as e:
            # counts as an empty attempt, the poll budget bounds retries
            logger.debug("Receipt query for %s failed: %s", tx_hash, e)
            return None

    @staticmethod
    def _resolve(pending: PendingTransaction, receipt: Dict[str, Any]) -> Dict[str, Any]:
        if receipt.get("blockNumber") is not None:
            pending.block_number = hex_to_int(receipt["blockNumber"])
        if receipt.get("gasUsed") is not None:
            pending.gas_used = hex_to_int(receipt["gasUsed"])

        if receipt_succeeded(receipt):
            pending.status = TransactionStatus.CONFIRMED
            logger.info("Transaction %s confirmed in block %s", pending.hash, pending.block_number)
            return receipt

        pending.status = TransactionStatus.REVERTED
        logger.warning("Transaction %s reverted in block %s", pending.hash, pending.block_number)
        raise TransactionRevertedError(f"Transaction {pending.hash} reverted", tx_hash=pending.hash)
