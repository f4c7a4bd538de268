"""Sequencing of one deployment run."""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from .artifacts import (
    ArtifactLoader,
    constructor_owner,
    deployment_data,
    resolve_constructor_args,
)
from .config import DeployConfig
from .confirmations import ConfirmationTracker, RpcReceiptSource
from .exceptions import ConfigurationError, DeploymentError, RpcError
from .funding import TreasuryFunder, decode_result, encode_call
from .network import NetworkContextProvider, signer_address
from .records import DeploymentRecordStore
from .rpc import JsonRpcClient
from .submitter import TransactionSubmitter
from .types import (
    ConfirmedDeployment,
    DeploymentRecord,
    DeploymentRequest,
    DeploymentResult,
    PendingTransaction,
    VerificationStatus,
)
from .verification import VerificationRequester

logger = logging.getLogger(__name__)


class DeploymentStage(Enum):
    """
    States of a run.

    Init -> ContextResolved -> Submitted -> Confirmed
         -> Verified | VerificationSkippedOrFailed -> Funded (optional) -> Recorded

    Any state may move to Aborted. From Confirmed onward aborting retracts
    nothing: the contract and any funding sent stay on chain.
    """

    INIT = "init"
    CONTEXT_RESOLVED = "context-resolved"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    VERIFIED = "verified"
    VERIFICATION_SKIPPED_OR_FAILED = "verification-skipped-or-failed"
    FUNDED = "funded"
    RECORDED = "recorded"
    ABORTED = "aborted"


class DeploymentOrchestrator:
    """Runs exactly one deployment, stage by stage. One instance per run."""

    def __init__(
        self,
        network: str,
        context_provider: NetworkContextProvider,
        submitter: TransactionSubmitter,
        tracker: ConfirmationTracker,
        verifier: VerificationRequester,
        funder: TreasuryFunder,
        store: DeploymentRecordStore,
        artifacts: ArtifactLoader,
        rpc: Optional[JsonRpcClient] = None,
    ):
        self.network = network
        self.context_provider = context_provider
        self.submitter = submitter
        self.tracker = tracker
        self.verifier = verifier
        self.funder = funder
        self.store = store
        self.artifacts = artifacts
        self.rpc = rpc

        self.stage = DeploymentStage.INIT
        self.history: List[DeploymentStage] = [DeploymentStage.INIT]
        self._pending: Optional[PendingTransaction] = None
        self._deployment: Optional[ConfirmedDeployment] = None

    @classmethod
    def from_config(
        cls,
        config: DeployConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "DeploymentOrchestrator":
        """
        Wire up all stages from a configuration.

        ``clock`` and ``sleep`` drive the confirmation wait.

        Raises:
            ConfigurationError: If the RPC endpoint or signer key is missing
        """
        if not config.rpc_url:
            raise ConfigurationError(f"RPC URL required for network '{config.network}'")
        if not config.private_key:
            raise ConfigurationError("Signer key required: set $PRIVATE_KEY")

        signer_address(config.private_key)

        rpc = JsonRpcClient(config.rpc_url)
        context_provider = NetworkContextProvider(rpc, config.private_key)
        submitter = TransactionSubmitter(rpc, config.private_key, config.gas_multiplier)
        tracker = ConfirmationTracker(
            RpcReceiptSource(rpc),
            poll_interval=config.poll_interval,
            timeout=config.timeout,
            clock=clock,
            sleep=sleep,
        )
        return cls(
            network=config.network,
            context_provider=context_provider,
            submitter=submitter,
            tracker=tracker,
            verifier=VerificationRequester(config.explorer_api_key, enabled=config.verify),
            funder=TreasuryFunder(rpc, submitter, tracker, token=config.treasury_token),
            store=DeploymentRecordStore(config.deployments_dir),
            artifacts=ArtifactLoader(config.artifacts_dir),
            rpc=rpc,
        )

    def _advance(self, stage: DeploymentStage) -> None:
        logger.info("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    def _abort(self, error: DeploymentError) -> None:
        """Attach everything known about the run to the error."""
        error.stage = error.stage or self.stage.value
        if self._pending is not None:
            error.transaction_hash = error.transaction_hash or self._pending.hash
        if self._deployment is not None:
            error.address = error.address or self._deployment.address
        logger.error("Deployment aborted at %s: %s", self.stage.value, error)
        self._advance(DeploymentStage.ABORTED)

    def run(
        self, request: DeploymentRequest, transaction_hash: Optional[str] = None
    ) -> DeploymentResult:
        """
        Execute the deployment pipeline.

        Args:
            request: What to deploy
            transaction_hash: Hash of an already-submitted creation; the run
                              resumes at confirmation without resubmitting

        Returns:
            DeploymentResult describing the recorded deployment

        Raises:
            DeploymentError: Any fatal stage failure, annotated with stage,
                             transaction hash and address where known
        """
        if self.stage is not DeploymentStage.INIT:
            raise DeploymentError("An orchestrator runs a single deployment; create a new one")

        try:
            return self._run(request, transaction_hash)
        except DeploymentError as e:
            self._abort(e)
            raise

    def _run(
        self, request: DeploymentRequest, transaction_hash: Optional[str]
    ) -> DeploymentResult:
        artifact = self.artifacts.load(request.contract_identifier)
        context = self.context_provider.resolve(self.network)
        self._advance(DeploymentStage.CONTEXT_RESOLVED)

        # Refuse before anything touches the chain
        self.store.ensure_writable(context.name, request.allow_overwrite)
        args = resolve_constructor_args(
            artifact.abi, request.constructor_args, context.signer_address
        )
        data = deployment_data(artifact, args)

        if transaction_hash is None:
            self._pending = self.submitter.deploy(
                context, data, gas_limit=request.gas_limit, gas_price=request.gas_price
            )
        else:
            logger.info("Resuming from submitted transaction %s", transaction_hash)
            self._pending = PendingTransaction(
                hash=transaction_hash, submitted_at=datetime.now(timezone.utc)
            )
        self._advance(DeploymentStage.SUBMITTED)

        self._deployment = self.tracker.wait(self._pending, request.confirmations)
        self._advance(DeploymentStage.CONFIRMED)
        self._log_total_supply(self._deployment, artifact.abi)

        verification = self.verifier.request(self._deployment, artifact, args, context)
        if verification.status is VerificationStatus.VERIFIED:
            self._advance(DeploymentStage.VERIFIED)
        else:
            self._advance(DeploymentStage.VERIFICATION_SKIPPED_OR_FAILED)

        funding = None
        funding_error = None
        if request.funding_amount is not None:
            try:
                funding = self.funder.fund(self._deployment, request.funding_amount, context)
            except DeploymentError as e:
                # Funding is best-effort; the deployment still gets recorded
                e.address = e.address or self._deployment.address
                logger.warning("Funding %s failed: %s", self._deployment.address, e)
                funding_error = e
            else:
                self._advance(DeploymentStage.FUNDED)

        record = DeploymentRecord(
            address=self._deployment.address,
            owner=constructor_owner(artifact.abi, args) or context.signer_address,
            chain_id=context.chain_id,
            transaction_hash=self._deployment.transaction_hash,
            abi=artifact.abi,
            deployed_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            network=context.name,
            contract=artifact.fully_qualified_name,
            block_number=self._deployment.block_number,
            gas_used=self._deployment.gas_used,
            confirmations=self._deployment.confirmations,
            url=(
                f"{context.block_explorer_url}/address/{self._deployment.address}"
                if context.block_explorer_url
                else None
            ),
            constructor_args=[_jsonable(arg) for arg in args],
            verification=verification.to_dict(),
            funding=_funding_entry(funding, funding_error),
        )
        record_path = self.store.write(context.name, record, request.allow_overwrite)
        self._advance(DeploymentStage.RECORDED)

        return DeploymentResult(
            record=record,
            record_path=str(record_path),
            deployment=self._deployment,
            verification=verification,
            funding=funding,
            funding_error=funding_error,
        )

    def _log_total_supply(self, deployment: ConfirmedDeployment, abi: list) -> None:
        """Log totalSupply() for token contracts; informational only."""
        if self.rpc is None:
            return
        has_total_supply = any(
            item.get("type") == "function"
            and item.get("name") == "totalSupply"
            and not item.get("inputs")
            for item in abi
        )
        if not has_total_supply:
            return
        try:
            result = self.rpc.call({"to": deployment.address, "data": encode_call("totalSupply()")})
            (total_supply,) = decode_result(["uint256"], result)
        except RpcError as e:
            logger.warning("Could not read totalSupply of %s: %s", deployment.address, e)
            return
        logger.info("Total supply of %s: %s", deployment.address, total_supply)


def _funding_entry(funding, funding_error) -> Optional[dict]:
    if funding is not None:
        return {
            "transactionHash": funding.transaction_hash,
            "amount": str(funding.amount),
            "baseUnits": str(funding.base_units),
            "asset": funding.asset,
        }
    if funding_error is not None:
        return {"error": str(funding_error)}
    return None


def _jsonable(value):
    """Constructor argument as stored in a record."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
