"""Data types and dataclasses for atxia-deployments library."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FeeEstimate:
    """EIP-1559 fee levels in wei."""

    base_fee: int
    priority_fee: int


@dataclass(frozen=True)
class NetworkContext:
    """Chain identity and signer for one run. Immutable once resolved."""

    chain_id: int
    name: str
    signer_address: str  # Checksummed address
    fee_estimate: Optional[FeeEstimate] = None
    local: bool = False
    block_explorer_url: Optional[str] = None


@dataclass
class DeploymentRequest:
    """What to deploy. Supplied by the caller and transient."""

    contract_identifier: str
    constructor_args: List[Any] = field(default_factory=list)
    gas_limit: Optional[int] = None  # Estimated when omitted
    funding_amount: Optional[Decimal] = None
    confirmations: int = 1
    gas_price: Optional[int] = None  # Explicit override in wei
    allow_overwrite: bool = False


@dataclass(frozen=True)
class CompiledArtifact:
    """A Hardhat compilation artifact."""

    contract_name: str
    source_name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    build_info_path: Optional[str] = None

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"


@dataclass(frozen=True)
class PendingTransaction:
    """A submitted transaction that has not yet reached the required depth."""

    hash: str
    submitted_at: datetime
    nonce: Optional[int] = None


@dataclass(frozen=True)
class ConfirmedDeployment:
    """A contract creation observed at the required confirmation depth."""

    address: str
    transaction_hash: str
    confirmations: int
    block_number: int
    gas_used: Optional[int] = None


class VerificationStatus(Enum):
    """
    Outcome tags of a verification request.

    Value strings define de/serialization law.
    """

    VERIFIED = "verified"
    PENDING = "pending"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class VerificationOutcome:
    """Tagged result of a verification request."""

    status: VerificationStatus
    reason: Optional[str] = None
    guid: Optional[str] = None

    @classmethod
    def verified(cls, reason: Optional[str] = None) -> "VerificationOutcome":
        return cls(VerificationStatus.VERIFIED, reason=reason)

    @classmethod
    def pending(cls, guid: Optional[str] = None) -> "VerificationOutcome":
        return cls(VerificationStatus.PENDING, guid=guid)

    @classmethod
    def failed(cls, reason: str) -> "VerificationOutcome":
        return cls(VerificationStatus.FAILED, reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "VerificationOutcome":
        return cls(VerificationStatus.SKIPPED, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status.value}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.guid is not None:
            data["guid"] = self.guid
        return data


@dataclass(frozen=True)
class FundingResult:
    """A confirmed treasury transfer to the deployed contract."""

    transaction_hash: str
    amount: Decimal
    base_units: int
    asset: str  # Token address, or "native"


@dataclass
class DeploymentRecord:
    """Durable proof of a deployment, stored per network."""

    # Required fields
    address: str
    owner: str
    chain_id: int
    transaction_hash: str
    abi: List[Dict[str, Any]]
    deployed_at: str  # ISO-8601 UTC

    # Informational fields
    network: Optional[str] = None
    contract: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    confirmations: Optional[int] = None
    url: Optional[str] = None
    constructor_args: Optional[List[Any]] = None
    verification: Optional[Dict[str, Any]] = None
    funding: Optional[Dict[str, Any]] = None

    # JSON key for each field, in output order
    _KEYS = {
        "address": "address",
        "owner": "owner",
        "chain_id": "chainId",
        "transaction_hash": "transactionHash",
        "deployed_at": "deployedAt",
        "network": "network",
        "contract": "contract",
        "block_number": "blockNumber",
        "gas_used": "gasUsed",
        "confirmations": "confirmations",
        "url": "url",
        "constructor_args": "constructorArgs",
        "verification": "verification",
        "funding": "funding",
        "abi": "abi",
    }

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attribute, key in self._KEYS.items():
            value = getattr(self, attribute)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        kwargs = {
            attribute: data.get(key) for attribute, key in cls._KEYS.items()
        }
        return cls(**kwargs)


@dataclass
class DeploymentResult:
    """Everything a completed run produced."""

    record: DeploymentRecord
    record_path: str
    deployment: ConfirmedDeployment
    verification: VerificationOutcome
    funding: Optional[FundingResult] = None
    funding_error: Optional[Exception] = None
