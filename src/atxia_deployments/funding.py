"""Seeding a deployed contract from the deployer's treasury balance."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .confirmations import ConfirmationTracker
from .constants import FUNDING_CONFIRMATIONS, NATIVE_DECIMALS
from .exceptions import ConfigurationError, InsufficientTreasuryBalanceError, RpcError
from .rpc import JsonRpcClient
from .submitter import TransactionSubmitter
from .types import ConfirmedDeployment, FundingResult, NetworkContext

logger = logging.getLogger(__name__)

NATIVE_ASSET = "native"


def encode_call(signature: str, types: Sequence[str] = (), args: Sequence[Any] = ()) -> str:
    """Calldata for a function signature such as "transfer(address,uint256)"."""
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(list(types), list(args))).hex()


def decode_result(types: List[str], data: str) -> tuple:
    """Decode eth_call return data."""
    try:
        return decode(types, bytes.fromhex(data[2:] if data.startswith("0x") else data))
    except (DecodingError, ValueError) as e:
        raise RpcError(f"Malformed call result {data!r}: {e}") from e


def to_base_units(amount: Decimal, decimals: int) -> int:
    """
    Scale a decimal amount to integer base units.

    Raises:
        ConfigurationError: If the amount is not finite and positive, or finer
            than the asset allows
    """
    try:
        amount = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid funding amount: {amount!r}") from e
    if not amount.is_finite():
        raise ConfigurationError(f"Funding amount must be finite, got {amount}")
    scaled = amount.scaleb(decimals)
    if amount <= 0:
        raise ConfigurationError(f"Funding amount must be positive, got {amount}")
    if scaled != scaled.to_integral_value():
        raise ConfigurationError(
            f"Funding amount {amount} has more precision than {decimals} decimals"
        )
    return int(scaled)


class TreasuryFunder:
    """
    Transfers an allotment of a fungible asset from the deployer to a contract.

    The asset is an ERC-20 token when ``token`` is set, else the native coin.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        submitter: TransactionSubmitter,
        tracker: ConfirmationTracker,
        token: Optional[str] = None,
    ):
        self.rpc = rpc
        self.submitter = submitter
        self.tracker = tracker
        self.token = to_checksum_address(token) if token else None

    @property
    def asset(self) -> str:
        return self.token or NATIVE_ASSET

    def decimals(self) -> int:
        if self.token is None:
            return NATIVE_DECIMALS
        (decimals,) = decode_result(
            ["uint8"], self.rpc.call({"to": self.token, "data": encode_call("decimals()")})
        )
        return decimals

    def balance(self, owner: str) -> int:
        if self.token is None:
            return self.rpc.get_balance(owner)
        data = encode_call("balanceOf(address)", ["address"], [owner])
        (balance,) = decode_result(["uint256"], self.rpc.call({"to": self.token, "data": data}))
        return balance

    def fund(
        self, deployment: ConfirmedDeployment, amount: Decimal, context: NetworkContext
    ) -> FundingResult:
        """
        Send ``amount`` of the asset to the deployed contract.

        Args:
            deployment: The confirmed deployment to fund
            amount: Amount in whole asset units
            context: Network context of the run

        Returns:
            FundingResult once the transfer is mined

        Raises:
            InsufficientTreasuryBalanceError: If the deployer holds less than ``amount``
            SubmissionError, ConfirmationTimeoutError, ...: If the transfer itself fails
        """
        base_units = to_base_units(amount, self.decimals())
        deployer = context.signer_address

        balance = self.balance(deployer)
        if balance < base_units:
            raise InsufficientTreasuryBalanceError(
                f"Treasury {deployer} holds {balance} base units of {self.asset}, "
                f"needs {base_units}",
                balance=balance,
                required=base_units,
                address=deployment.address,
            )

        logger.info("Funding %s with %s %s", deployment.address, amount, self.asset)
        if self.token is None:
            pending = self.submitter.send_transaction(context, to=deployment.address, value=base_units)
        else:
            data = encode_call(
                "transfer(address,uint256)", ["address", "uint256"], [deployment.address, base_units]
            )
            pending = self.submitter.send_transaction(context, to=self.token, data=data)

        self.tracker.wait_for_receipt(pending, FUNDING_CONFIRMATIONS)
        logger.info("Funding transaction %s confirmed", pending.hash)
        return FundingResult(
            transaction_hash=pending.hash,
            amount=Decimal(amount),
            base_units=base_units,
            asset=self.asset,
        )
