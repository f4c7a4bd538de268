"""
atxia-deployments: deployment orchestration for the ATXIA contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .config import DeployConfig
from .exceptions import (
    ArtifactNotFoundError,
    ConfigurationError,
    ConfirmationTimeoutError,
    DeploymentError,
    InsufficientTreasuryBalanceError,
    NetworkMismatchError,
    RecordExistsError,
    RecordNotFoundError,
    RpcError,
    StorageWriteError,
    SubmissionError,
    TransactionDroppedError,
    TransactionRevertedError,
    VerificationFailure,
)
from .orchestrator import DeploymentOrchestrator, DeploymentStage
from .records import DeploymentRecordStore
from .types import (
    ConfirmedDeployment,
    DeploymentRecord,
    DeploymentRequest,
    DeploymentResult,
    NetworkContext,
    PendingTransaction,
    VerificationOutcome,
    VerificationStatus,
)

try:
    __version__ = version("atxia-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DeployConfig",
    "DeploymentOrchestrator",
    "DeploymentStage",
    "DeploymentRecordStore",
    "ConfirmedDeployment",
    "DeploymentRecord",
    "DeploymentRequest",
    "DeploymentResult",
    "NetworkContext",
    "PendingTransaction",
    "VerificationOutcome",
    "VerificationStatus",
    "DeploymentError",
    "ConfigurationError",
    "NetworkMismatchError",
    "ArtifactNotFoundError",
    "RecordExistsError",
    "RecordNotFoundError",
    "RpcError",
    "SubmissionError",
    "ConfirmationTimeoutError",
    "TransactionDroppedError",
    "TransactionRevertedError",
    "VerificationFailure",
    "InsufficientTreasuryBalanceError",
    "StorageWriteError",
]
