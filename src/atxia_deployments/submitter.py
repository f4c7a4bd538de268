"""Transaction building, signing and submission."""

import logging
from datetime import datetime, timezone
from decimal import ROUND_CEILING, Decimal
from typing import Any, Dict, Optional

from eth_account import Account

from .constants import DEFAULT_GAS_MULTIPLIER
from .exceptions import RpcError, RpcTransportError, SubmissionError
from .rpc import JsonRpcClient
from .types import NetworkContext, PendingTransaction

logger = logging.getLogger(__name__)

# Node error message fragments -> submission failure reason
REJECTION_REASONS = [
    ("insufficient funds", "insufficient-funds"),
    ("nonce too low", "nonce-conflict"),
    ("nonce too high", "nonce-conflict"),
    ("already known", "nonce-conflict"),
    ("replacement transaction underpriced", "underpriced"),
    ("underpriced", "underpriced"),
    ("fee cap less than block base fee", "underpriced"),
]


def classify_rejection(error: RpcError) -> str:
    """Map a node rejection to a submission failure reason."""
    if isinstance(error, RpcTransportError):
        return "transport"
    message = str(error).lower()
    for fragment, reason in REJECTION_REASONS:
        if fragment in message:
            return reason
    return "rejected"


def apply_multiplier(value: int, multiplier: Decimal) -> int:
    """Scale a wei amount, rounding up."""
    return int((Decimal(value) * multiplier).to_integral_value(rounding=ROUND_CEILING))


class TransactionSubmitter:
    """Builds, signs and sends transactions from the deployer account."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        private_key: str,
        gas_multiplier: Decimal = DEFAULT_GAS_MULTIPLIER,
    ):
        self.rpc = rpc
        self._account = Account.from_key(private_key)
        self.gas_multiplier = Decimal(gas_multiplier)

    @property
    def address(self) -> str:
        return self._account.address

    def effective_gas_price(self, override: Optional[int] = None) -> int:
        """
        Gas price to pay: an explicit override, else the node's suggestion
        scaled by the safety multiplier.
        """
        if override is not None:
            return override
        return apply_multiplier(self.rpc.gas_price(), self.gas_multiplier)

    def deploy(
        self,
        context: NetworkContext,
        data: str,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> PendingTransaction:
        """
        Submit a contract-creation transaction.

        Args:
            context: Resolved network context
            data: Creation bytecode with encoded constructor arguments
            gas_limit: Gas limit (estimated when omitted)
            gas_price: Explicit gas price override in wei

        Returns:
            PendingTransaction for the submitted creation

        Raises:
            SubmissionError: On insufficient balance, nonce conflicts or transport errors
        """
        return self.send_transaction(
            context, to=None, data=data, gas_limit=gas_limit, gas_price=gas_price
        )

    def send_transaction(
        self,
        context: NetworkContext,
        to: Optional[str],
        data: str = "0x",
        value: int = 0,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> PendingTransaction:
        """
        Sign and send a transaction. A missing ``to`` creates a contract.

        Not retried: the caller decides whether to resubmit with a fresh nonce.
        """
        try:
            transaction = self._build(context, to, data, value, gas_limit, gas_price)
        except RpcError as e:
            raise SubmissionError(
                f"Cannot prepare transaction: {e}", reason=classify_rejection(e)
            ) from e

        max_price = transaction.get("maxFeePerGas", transaction.get("gasPrice"))
        required = transaction["gas"] * max_price + value
        try:
            balance = self.rpc.get_balance(self.address)
        except RpcError as e:
            raise SubmissionError(
                f"Cannot read deployer balance: {e}", reason=classify_rejection(e)
            ) from e
        if balance < required:
            raise SubmissionError(
                f"Insufficient balance for {self.address}: has {balance} wei, "
                f"needs {required} wei",
                reason="insufficient-funds",
            )

        signed = self._account.sign_transaction(transaction)
        raw = "0x" + bytes(signed.raw_transaction).hex()
        try:
            transaction_hash = self.rpc.send_raw_transaction(raw)
        except RpcError as e:
            raise SubmissionError(
                f"Transaction rejected: {e}", reason=classify_rejection(e)
            ) from e

        logger.info(
            "Submitted %s transaction %s (nonce %s)",
            "creation" if to is None else "call",
            transaction_hash,
            transaction["nonce"],
        )
        return PendingTransaction(
            hash=transaction_hash,
            submitted_at=datetime.now(timezone.utc),
            nonce=transaction["nonce"],
        )

    def _build(
        self,
        context: NetworkContext,
        to: Optional[str],
        data: str,
        value: int,
        gas_limit: Optional[int],
        gas_price: Optional[int],
    ) -> Dict[str, Any]:
        transaction: Dict[str, Any] = {
            "chainId": context.chain_id,
            "nonce": self.rpc.get_transaction_count(self.address, "pending"),
            "value": value,
            "data": data,
        }
        if to is not None:
            transaction["to"] = to

        if gas_limit is None:
            estimate_request = {"from": self.address, "data": data, "value": hex(value)}
            if to is not None:
                estimate_request["to"] = to
            gas_limit = apply_multiplier(
                self.rpc.estimate_gas(estimate_request), self.gas_multiplier
            )
        transaction["gas"] = gas_limit

        price = self.effective_gas_price(gas_price)
        fees = context.fee_estimate
        if fees is not None:
            # An explicit override caps the fee; only computed prices are floored
            if gas_price is not None:
                max_fee = price
            else:
                max_fee = max(price, fees.base_fee + fees.priority_fee)
            transaction["type"] = 2
            transaction["maxFeePerGas"] = max_fee
            transaction["maxPriorityFeePerGas"] = min(fees.priority_fee, max_fee)
        else:
            transaction["gasPrice"] = price

        logger.debug("Built transaction %s", {k: v for k, v in transaction.items() if k != "data"})
        return transaction
