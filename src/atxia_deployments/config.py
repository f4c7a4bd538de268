"""Run configuration resolved once from the environment."""

import dataclasses
import json
import math
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from dotenv import dotenv_values
from eth_utils import is_address

from .constants import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_CONSTRUCTOR_ARGS,
    DEFAULT_CONTRACT,
    DEFAULT_GAS_MULTIPLIER,
    DEFAULT_NETWORK,
    DEFAULT_POLL_INTERVAL,
    NETWORK_CONFIG,
)
from .exceptions import ConfigurationError
from .paths import get_default_artifacts_dir, get_default_deployments_dir
from .types import DeploymentRequest

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigurationError(f"${name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value, 0)
    except ValueError:
        raise ConfigurationError(f"${name} must be an integer, got {value!r}") from None


def _parse_float(name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError(f"${name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ConfigurationError(f"${name} must be a finite number, got {value!r}")
    return number


def _parse_decimal(name: str, value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ConfigurationError(f"${name} must be a decimal amount, got {value!r}") from None
    if not amount.is_finite():
        raise ConfigurationError(f"${name} must be a finite amount, got {value!r}")
    return amount


def _parse_args(name: str, value: str) -> List[Any]:
    try:
        args = json.loads(value)
    except json.JSONDecodeError:
        raise ConfigurationError(f"${name} must be a JSON list, got {value!r}") from None
    if not isinstance(args, list):
        raise ConfigurationError(f"${name} must be a JSON list, got {value!r}")
    return args


@dataclass(frozen=True)
class DeployConfig:
    """Everything one deployment run needs, resolved up front."""

    network: str = DEFAULT_NETWORK
    rpc_url: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    contract: str = DEFAULT_CONTRACT
    constructor_args: List[Any] = field(default_factory=lambda: list(DEFAULT_CONSTRUCTOR_ARGS))
    funding_amount: Optional[Decimal] = None
    treasury_token: Optional[str] = None
    confirmations: Optional[int] = None  # Network default when None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    verify: bool = True
    explorer_api_key: Optional[str] = field(default=None, repr=False)
    gas_multiplier: Decimal = DEFAULT_GAS_MULTIPLIER
    gas_price: Optional[int] = None
    gas_limit: Optional[int] = None
    deployments_dir: Path = field(default_factory=get_default_deployments_dir)
    artifacts_dir: Path = field(default_factory=get_default_artifacts_dir)
    allow_overwrite: bool = False

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[Path, str]] = None,
        network: Optional[str] = None,
    ) -> "DeployConfig":
        """
        Build a configuration from environment variables.

        Values in the process environment win over a .env file.

        Args:
            environ: Environment mapping (defaults to os.environ)
            dotenv_path: .env file to read (defaults to ./.env when present)
            network: Network name, overriding $NETWORK

        Raises:
            ConfigurationError: If a variable is malformed or the network unknown
        """
        if environ is None:
            environ = os.environ
        if dotenv_path is None and Path(".env").exists():
            dotenv_path = ".env"

        env = {}
        if dotenv_path is not None:
            env.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        env.update(environ)

        network = network or env.get("NETWORK") or DEFAULT_NETWORK
        if network not in NETWORK_CONFIG:
            known = ", ".join(sorted(NETWORK_CONFIG))
            raise ConfigurationError(f"Unknown network '{network}' (known: {known})")
        network_config = NETWORK_CONFIG[network]

        rpc_url = (
            env.get(network_config["default_rpc_env"])
            or env.get("RPC_URL")
            or network_config["default_rpc_url"]
        )

        kwargs: dict = {
            "network": network,
            "rpc_url": rpc_url,
            "private_key": env.get("PRIVATE_KEY") or None,
            "explorer_api_key": env.get("ETHERSCAN_API_KEY") or None,
            "treasury_token": env.get("TREASURY_TOKEN") or None,
        }
        if env.get("CONTRACT"):
            kwargs["contract"] = env["CONTRACT"]
        if env.get("CONSTRUCTOR_ARGS"):
            kwargs["constructor_args"] = _parse_args("CONSTRUCTOR_ARGS", env["CONSTRUCTOR_ARGS"])
        if env.get("FUNDING_AMOUNT"):
            kwargs["funding_amount"] = _parse_decimal("FUNDING_AMOUNT", env["FUNDING_AMOUNT"])
        if env.get("CONFIRMATIONS"):
            kwargs["confirmations"] = _parse_int("CONFIRMATIONS", env["CONFIRMATIONS"])
        if env.get("POLL_INTERVAL"):
            kwargs["poll_interval"] = _parse_float("POLL_INTERVAL", env["POLL_INTERVAL"])
        if env.get("CONFIRMATION_TIMEOUT"):
            kwargs["timeout"] = _parse_float("CONFIRMATION_TIMEOUT", env["CONFIRMATION_TIMEOUT"])
        if "VERIFY" in env:
            kwargs["verify"] = _parse_bool("VERIFY", env["VERIFY"])
        if env.get("GAS_MULTIPLIER"):
            kwargs["gas_multiplier"] = _parse_decimal("GAS_MULTIPLIER", env["GAS_MULTIPLIER"])
        if env.get("GAS_PRICE"):
            kwargs["gas_price"] = _parse_int("GAS_PRICE", env["GAS_PRICE"])
        if env.get("GAS_LIMIT"):
            kwargs["gas_limit"] = _parse_int("GAS_LIMIT", env["GAS_LIMIT"])
        if env.get("DEPLOYMENTS_DIR"):
            kwargs["deployments_dir"] = Path(env["DEPLOYMENTS_DIR"])
        if env.get("ARTIFACTS_DIR"):
            kwargs["artifacts_dir"] = Path(env["ARTIFACTS_DIR"])
        if "ALLOW_OVERWRITE" in env:
            kwargs["allow_overwrite"] = _parse_bool("ALLOW_OVERWRITE", env["ALLOW_OVERWRITE"])

        return cls(**kwargs).validated()

    def replace(self, **overrides: Any) -> "DeployConfig":
        """Copy with overrides applied; None values leave fields untouched."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes).validated()

    def validated(self) -> "DeployConfig":
        """
        Check cross-field constraints.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.network not in NETWORK_CONFIG:
            raise ConfigurationError(f"Unknown network '{self.network}'")
        if self.confirmations is not None and self.confirmations < 1:
            raise ConfigurationError("Confirmations must be at least 1")
        if not (math.isfinite(self.poll_interval) and math.isfinite(self.timeout)):
            raise ConfigurationError("Poll interval and timeout must be finite")
        if self.poll_interval <= 0 or self.timeout <= 0:
            raise ConfigurationError("Poll interval and timeout must be positive")
        if not Decimal(self.gas_multiplier).is_finite() or self.gas_multiplier < 1:
            raise ConfigurationError("Gas multiplier must be a finite number of at least 1")
        if self.funding_amount is not None and (
            not Decimal(self.funding_amount).is_finite() or self.funding_amount <= 0
        ):
            raise ConfigurationError("Funding amount must be a finite positive amount")
        if self.treasury_token is not None and not is_address(self.treasury_token):
            raise ConfigurationError(f"Treasury token is not an address: {self.treasury_token!r}")
        return self

    @property
    def required_confirmations(self) -> int:
        if self.confirmations is not None:
            return self.confirmations
        return NETWORK_CONFIG[self.network]["confirmations"]

    def to_request(self) -> DeploymentRequest:
        """The deployment request this configuration describes."""
        return DeploymentRequest(
            contract_identifier=self.contract,
            constructor_args=list(self.constructor_args),
            gas_limit=self.gas_limit,
            funding_amount=self.funding_amount,
            confirmations=self.required_confirmations,
            gas_price=self.gas_price,
            allow_overwrite=self.allow_overwrite,
        )
