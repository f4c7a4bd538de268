"""Source verification requests to an Etherscan-compatible explorer API."""

import json
import logging
from typing import Any, Dict, Optional, Sequence

import requests

from .artifacts import encode_constructor_args
from .constants import RPC_TIMEOUT, VERIFICATION_API_URL
from .exceptions import ConfigurationError, VerificationFailure
from .types import CompiledArtifact, ConfirmedDeployment, NetworkContext, VerificationOutcome

logger = logging.getLogger(__name__)

ALREADY_VERIFIED = "already verified"
PASS_VERIFIED = "pass - verified"
PENDING_IN_QUEUE = "pending in queue"


def load_build_info(artifact: CompiledArtifact) -> Dict[str, Any]:
    """
    Load the Hardhat build-info for an artifact.

    Returns:
        Dictionary with "input" (standard JSON) and "solcLongVersion"

    Raises:
        VerificationFailure: If the build-info is missing or malformed
    """
    if artifact.build_info_path is None:
        raise VerificationFailure(
            f"No build-info for {artifact.fully_qualified_name}; recompile with Hardhat"
        )
    try:
        with open(artifact.build_info_path) as f:
            build_info = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise VerificationFailure(f"Unreadable build-info {artifact.build_info_path}: {e}") from e

    for required in ("input", "solcLongVersion"):
        if required not in build_info:
            raise VerificationFailure(
                f"Build-info {artifact.build_info_path} is missing '{required}'"
            )
    return build_info


class VerificationRequester:
    """
    Submits contract sources for verification.

    Submission only: the explorer finishes verification asynchronously and
    this class reports whatever the explorer acknowledges. Calling it again
    for the same deployment is harmless.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = VERIFICATION_API_URL,
        enabled: bool = True,
        timeout: float = RPC_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.enabled = enabled
        self.timeout = timeout
        self._session = session or requests.Session()

    def skip_reason(self, context: NetworkContext) -> Optional[str]:
        """Why verification would be skipped on this network, if it would."""
        if not self.enabled:
            return "verification disabled"
        if context.local:
            return f"{context.name} is a local network"
        if not self.api_key:
            return "no verification API key configured"
        return None

    def request(
        self,
        deployment: ConfirmedDeployment,
        artifact: CompiledArtifact,
        constructor_args: Sequence[Any],
        context: NetworkContext,
    ) -> VerificationOutcome:
        """
        Submit a confirmed deployment for source verification.

        Never raises for service-side problems: those become Failed outcomes.

        Args:
            deployment: The confirmed deployment
            artifact: Artifact the contract was deployed from
            constructor_args: Resolved constructor arguments used at deployment
            context: Network context of the deployment

        Returns:
            Skipped, Verified, Pending or Failed outcome
        """
        reason = self.skip_reason(context)
        if reason is not None:
            logger.info("Skipping verification: %s", reason)
            return VerificationOutcome.skipped(reason)

        try:
            payload = self._payload(deployment, artifact, constructor_args)
        except (VerificationFailure, ConfigurationError) as e:
            logger.warning("Verification not submitted: %s", e)
            return VerificationOutcome.failed(str(e))

        logger.info("Submitting %s at %s for verification", artifact.contract_name, deployment.address)
        result = self._call(context.chain_id, "post", payload)
        if isinstance(result, VerificationOutcome):
            return result

        message = str(result.get("result", ""))
        if result.get("status") == "1":
            logger.info("Verification accepted (guid %s)", message)
            return VerificationOutcome.pending(guid=message)
        if ALREADY_VERIFIED in message.lower():
            logger.info("Contract %s is already verified", deployment.address)
            return VerificationOutcome.verified(reason=message)

        logger.warning("Verification rejected: %s", message or result.get("message"))
        return VerificationOutcome.failed(message or str(result.get("message", "rejected")))

    def check_status(self, guid: str, context: NetworkContext) -> VerificationOutcome:
        """
        Look up the state of a submitted verification once.

        Args:
            guid: Identifier returned when the verification was accepted
            context: Network context of the deployment
        """
        reason = self.skip_reason(context)
        if reason is not None:
            return VerificationOutcome.skipped(reason)

        params = {
            "apikey": self.api_key,
            "module": "contract",
            "action": "checkverifystatus",
            "guid": guid,
        }
        result = self._call(context.chain_id, "get", params)
        if isinstance(result, VerificationOutcome):
            return result

        message = str(result.get("result", ""))
        lowered = message.lower()
        if PASS_VERIFIED in lowered or ALREADY_VERIFIED in lowered:
            return VerificationOutcome.verified(reason=message)
        if PENDING_IN_QUEUE in lowered:
            return VerificationOutcome.pending(guid=guid)
        return VerificationOutcome.failed(message or "unknown verification status")

    def _payload(
        self,
        deployment: ConfirmedDeployment,
        artifact: CompiledArtifact,
        constructor_args: Sequence[Any],
    ) -> Dict[str, str]:
        build_info = load_build_info(artifact)
        return {
            "apikey": self.api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": deployment.address,
            "sourceCode": json.dumps(build_info["input"]),
            "codeformat": "solidity-standard-json-input",
            "contractname": artifact.fully_qualified_name,
            "compilerversion": f"v{build_info['solcLongVersion']}",
            # Misspelling is part of the Etherscan API
            "constructorArguements": encode_constructor_args(artifact.abi, constructor_args).hex(),
        }

    def _call(self, chain_id: int, method: str, data: Dict[str, str]):
        """One bounded round trip. Returns the JSON body or a Failed outcome."""
        params = {"chainid": str(chain_id)}
        try:
            if method == "post":
                response = self._session.post(
                    self.api_url, params=params, data=data, timeout=self.timeout
                )
            else:
                response = self._session.get(
                    self.api_url, params={**params, **data}, timeout=self.timeout
                )
        except requests.RequestException as e:
            logger.warning("Verification service unreachable: %s", e)
            return VerificationOutcome.failed(f"verification service unreachable: {e}")

        if response.status_code != 200:
            logger.warning("Verification service answered HTTP %s", response.status_code)
            return VerificationOutcome.failed(
                f"verification service answered HTTP {response.status_code}"
            )
        try:
            body = response.json()
        except ValueError:
            return VerificationOutcome.failed("verification service returned invalid JSON")
        if not isinstance(body, dict):
            return VerificationOutcome.failed("verification service returned unexpected payload")
        return body
