"""Waiting for transactions to reach a confirmation depth."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from eth_utils import is_address, to_checksum_address

from .constants import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_DROPPED_AFTER, DEFAULT_POLL_INTERVAL
from .exceptions import (
    ConfigurationError,
    ConfirmationTimeoutError,
    RpcError,
    SubmissionError,
    TransactionDroppedError,
    TransactionRevertedError,
)
from .rpc import JsonRpcClient, to_int
from .types import ConfirmedDeployment, PendingTransaction

logger = logging.getLogger(__name__)


class ReceiptSource(ABC):
    """Where the tracker learns about receipts and chain height."""

    @abstractmethod
    def receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        """The receipt, or None while unmined."""
        raise NotImplementedError

    @abstractmethod
    def is_known(self, transaction_hash: str) -> bool:
        """True while the node still knows the (possibly pending) transaction."""
        raise NotImplementedError

    @abstractmethod
    def head(self) -> int:
        """Current block number."""
        raise NotImplementedError


class RpcReceiptSource(ReceiptSource):
    """Polls receipts and head over JSON-RPC."""

    def __init__(self, rpc: JsonRpcClient):
        self.rpc = rpc

    def receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.rpc.get_transaction_receipt(transaction_hash)

    def is_known(self, transaction_hash: str) -> bool:
        return self.rpc.get_transaction(transaction_hash) is not None

    def head(self) -> int:
        return self.rpc.block_number()


class ConfirmationTracker:
    """
    Blocks until a transaction is mined and buried under enough blocks.

    The wait sleeps between polls and is bounded by ``timeout``. Clock and
    sleep are injectable so the loop can be driven without real time.
    """

    def __init__(
        self,
        source: ReceiptSource,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        dropped_after: int = DEFAULT_DROPPED_AFTER,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if poll_interval <= 0:
            raise ConfigurationError("Poll interval must be positive")
        if timeout <= 0:
            raise ConfigurationError("Confirmation timeout must be positive")
        self.source = source
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.dropped_after = dropped_after
        self._clock = clock
        self._sleep = sleep

    def wait_for_receipt(self, pending: PendingTransaction, confirmations: int) -> Dict[str, Any]:
        """
        Wait until ``pending`` has ``confirmations`` blocks including its own.

        Returns:
            The receipt, with "confirmations" set to the observed depth

        Raises:
            ConfirmationTimeoutError: If the depth is not reached in time
            TransactionDroppedError: If the node forgets the transaction
            TransactionRevertedError: If the transaction is mined but failed
        """
        if confirmations < 1:
            raise ConfigurationError(f"Confirmation depth must be at least 1, got {confirmations}")

        transaction_hash = pending.hash
        deadline = self._clock() + self.timeout
        unknown_polls = 0

        logger.info(
            "Waiting for %s confirmation(s) of %s (timeout %ss)",
            confirmations,
            transaction_hash,
            self.timeout,
        )
        while True:
            receipt = self._poll_receipt(transaction_hash)
            if receipt is not None:
                unknown_polls = 0
                block_number = _receipt_int(receipt, "blockNumber", transaction_hash)
                if _receipt_int(receipt, "status", transaction_hash, default="0x1") == 0:
                    raise TransactionRevertedError(
                        f"Transaction {transaction_hash} reverted in block {block_number}",
                        transaction_hash=transaction_hash,
                    )
                depth = self._poll_head(transaction_hash) - block_number + 1
                logger.debug("%s has %s/%s confirmations", transaction_hash, depth, confirmations)
                if depth >= confirmations:
                    return dict(receipt, confirmations=depth)
            elif self._poll_known(transaction_hash):
                unknown_polls = 0
            else:
                unknown_polls += 1
                if unknown_polls >= self.dropped_after:
                    raise TransactionDroppedError(
                        f"Transaction {transaction_hash} was dropped or replaced; "
                        "check the deployer nonce before resubmitting",
                        transaction_hash=transaction_hash,
                    )

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ConfirmationTimeoutError(
                    f"Transaction {transaction_hash} did not reach {confirmations} "
                    f"confirmation(s) within {self.timeout}s",
                    transaction_hash=transaction_hash,
                )
            self._sleep(min(self.poll_interval, remaining))

    def wait(self, pending: PendingTransaction, confirmations: int) -> ConfirmedDeployment:
        """
        Wait for a contract creation and return the confirmed deployment.

        Raises:
            SubmissionError: If the receipt carries no contract address
            (plus everything wait_for_receipt raises)
        """
        receipt = self.wait_for_receipt(pending, confirmations)

        address = receipt.get("contractAddress")
        if not address or not is_address(address):
            raise SubmissionError(
                f"Receipt of {pending.hash} has no contract address; not a contract creation",
                reason="malformed-receipt",
                transaction_hash=pending.hash,
            )

        gas_used = receipt.get("gasUsed")
        deployment = ConfirmedDeployment(
            address=to_checksum_address(address),
            transaction_hash=pending.hash,
            confirmations=receipt["confirmations"],
            block_number=_receipt_int(receipt, "blockNumber", pending.hash),
            gas_used=(
                _receipt_int(receipt, "gasUsed", pending.hash) if gas_used is not None else None
            ),
        )
        logger.info(
            "Contract deployed at %s in block %s (%s confirmations)",
            deployment.address,
            deployment.block_number,
            deployment.confirmations,
        )
        return deployment

    # RPC hiccups while waiting are surfaced with the hash attached

    def _poll_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        try:
            return self.source.receipt(transaction_hash)
        except RpcError as e:
            e.transaction_hash = e.transaction_hash or transaction_hash
            raise

    def _poll_known(self, transaction_hash: str) -> bool:
        try:
            return self.source.is_known(transaction_hash)
        except RpcError as e:
            e.transaction_hash = e.transaction_hash or transaction_hash
            raise

    def _poll_head(self, transaction_hash: str) -> int:
        try:
            return self.source.head()
        except RpcError as e:
            e.transaction_hash = e.transaction_hash or transaction_hash
            raise


def _receipt_int(
    receipt: Dict[str, Any], field: str, transaction_hash: str, default: Optional[str] = None
) -> int:
    """Read a quantity from a receipt, failing fast on malformed shapes."""
    try:
        return to_int(receipt.get(field, default), field)
    except RpcError as e:
        raise SubmissionError(
            f"Malformed receipt for {transaction_hash}: {e}",
            reason="malformed-receipt",
            transaction_hash=transaction_hash,
        ) from e
