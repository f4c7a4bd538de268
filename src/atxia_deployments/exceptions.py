"""Custom exception classes for atxia-deployments library."""

from typing import Optional


class DeploymentError(Exception):
    """
    Base exception for deployment-related errors.

    Carries the pipeline context known when the error surfaced so that an
    operator can check the chain before resubmitting anything.
    """

    def __init__(
        self,
        message: str = "",
        *,
        stage: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        address: Optional[str] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.transaction_hash = transaction_hash
        self.address = address

    def context(self) -> str:
        """Render known context as a single line (empty if none known)."""
        parts = []
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.transaction_hash:
            parts.append(f"tx={self.transaction_hash}")
        if self.address:
            parts.append(f"address={self.address}")
        return ", ".join(parts)


class ConfigurationError(DeploymentError, ValueError):
    """Raised when credentials or settings are missing or invalid."""

    pass


class NetworkMismatchError(ConfigurationError):
    """Raised when the RPC endpoint reports a different chain than expected."""

    def __init__(self, network: str, expected_chain_id: int, actual_chain_id: int):
        super().__init__(
            f"Network '{network}' expects chain id {expected_chain_id} "
            f"but the RPC endpoint reports {actual_chain_id}"
        )
        self.network = network
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id


class ArtifactNotFoundError(ConfigurationError):
    """Raised when a contract identifier does not resolve to a compiled artifact."""

    pass


class RecordExistsError(ConfigurationError):
    """Raised when a network already has a deployment record and overwrite was not allowed."""

    pass


class RpcError(DeploymentError, RuntimeError):
    """Raised when the JSON-RPC endpoint returns an error object."""

    def __init__(self, message: str, code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.code = code


class RpcTransportError(RpcError):
    """Raised when the JSON-RPC endpoint cannot be reached or answers garbage."""

    pass


class SubmissionError(DeploymentError, RuntimeError):
    """Raised when a transaction is rejected before it is mined."""

    def __init__(self, message: str, reason: str = "rejected", **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason


class ConfirmationTimeoutError(DeploymentError, TimeoutError):
    """Raised when a transaction does not reach the required depth in time."""

    pass


class TransactionDroppedError(DeploymentError, RuntimeError):
    """Raised when a submitted transaction disappears from the node."""

    pass


class TransactionRevertedError(DeploymentError, RuntimeError):
    """Raised when a transaction is mined with a failed status."""

    pass


class VerificationFailure(DeploymentError, RuntimeError):
    """Raised when source verification cannot be submitted. Never fatal to a run."""

    pass


class InsufficientTreasuryBalanceError(DeploymentError, ValueError):
    """Raised when the deployer holds less than the requested funding amount."""

    def __init__(self, message: str, balance: int = 0, required: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.balance = balance
        self.required = required


class StorageWriteError(DeploymentError, OSError):
    """Raised when the deployment record cannot be persisted."""

    pass


class RecordNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when no deployment record exists for a network."""

    pass
