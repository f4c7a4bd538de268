"""Hardhat artifact resolution and constructor argument encoding."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import is_address, to_checksum_address

from .constants import DEPLOYER_PLACEHOLDER
from .exceptions import ArtifactNotFoundError, ConfigurationError
from .paths import get_default_artifacts_dir
from .types import CompiledArtifact

# Constructor input names treated as the contract owner
OWNER_INPUT_NAMES = ("owner", "initialOwner", "_owner", "owner_")


def _is_artifact_file(path: Path) -> bool:
    """Artifacts live next to .dbg.json files; build-info holds compiler output."""
    return not path.name.endswith(".dbg.json") and "build-info" not in path.parts


def parse_artifact(file_path: Path) -> CompiledArtifact:
    """
    Parse a Hardhat artifact JSON file.

    Args:
        file_path: Path to artifacts/<source>/<Name>.json

    Returns:
        CompiledArtifact with the build-info path resolved when available

    Raises:
        ConfigurationError: If the file is not a valid artifact
    """
    try:
        with open(file_path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Unreadable artifact {file_path}: {e}") from e

    for required in ("contractName", "sourceName", "abi", "bytecode"):
        if required not in data:
            raise ConfigurationError(f"Artifact {file_path} is missing '{required}'")

    bytecode = data["bytecode"]
    if not isinstance(bytecode, str) or bytecode in ("", "0x"):
        # Interfaces and abstract contracts compile to empty bytecode
        raise ConfigurationError(f"Artifact {file_path} has no deployable bytecode")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    # The .dbg.json companion points at the build-info used for verification
    build_info_path = None
    dbg_file = file_path.with_name(f"{file_path.stem}.dbg.json")
    if dbg_file.exists():
        try:
            with open(dbg_file) as f:
                build_info = json.load(f).get("buildInfo")
        except (OSError, json.JSONDecodeError):
            build_info = None
        if build_info:
            build_info_path = str((dbg_file.parent / build_info).resolve())

    return CompiledArtifact(
        contract_name=data["contractName"],
        source_name=data["sourceName"],
        abi=data["abi"],
        bytecode=bytecode,
        build_info_path=build_info_path,
    )


class ArtifactLoader:
    """Resolves contract identifiers against a Hardhat artifacts directory."""

    def __init__(self, artifacts_dir: Optional[Union[Path, str]] = None):
        if artifacts_dir is None:
            artifacts_dir = get_default_artifacts_dir()
        self.artifacts_dir = Path(artifacts_dir)

    def load(self, identifier: str) -> CompiledArtifact:
        """
        Load the artifact for a contract.

        Args:
            identifier: Bare contract name ("ATXIA") or fully qualified
                        name ("contracts/ATXIA.sol:ATXIA")

        Raises:
            ArtifactNotFoundError: If nothing matches
            ConfigurationError: If a bare name is ambiguous or the file is malformed
        """
        if not self.artifacts_dir.is_dir():
            raise ArtifactNotFoundError(
                f"Artifacts directory not found at {self.artifacts_dir}. "
                "Compile the contracts first."
            )

        if ":" in identifier:
            source_name, contract_name = identifier.rsplit(":", 1)
            candidate = self.artifacts_dir / source_name / f"{contract_name}.json"
            if not candidate.exists():
                raise ArtifactNotFoundError(f"No artifact for '{identifier}' at {candidate}")
            return parse_artifact(candidate)

        matches = [
            path
            for path in sorted(self.artifacts_dir.rglob(f"{identifier}.json"))
            if _is_artifact_file(path.relative_to(self.artifacts_dir))
        ]
        if not matches:
            raise ArtifactNotFoundError(
                f"Contract '{identifier}' not found in {self.artifacts_dir}"
            )
        if len(matches) > 1:
            names = ", ".join(str(p.relative_to(self.artifacts_dir)) for p in matches)
            raise ConfigurationError(
                f"Contract '{identifier}' is ambiguous ({names}); use a fully qualified name"
            )
        return parse_artifact(matches[0])


def constructor_inputs(abi: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the constructor inputs of an ABI (empty without a constructor)."""
    for item in abi:
        if item.get("type") == "constructor":
            return item.get("inputs", [])
    return []


def abi_type(abi_input: Dict[str, Any]) -> str:
    """Canonical type string for an ABI input, expanding tuples."""
    type_str = abi_input["type"]
    if type_str.startswith("tuple"):
        components = ",".join(abi_type(c) for c in abi_input.get("components", []))
        return f"({components}){type_str[len('tuple'):]}"
    return type_str


def _coerce(type_str: str, value: Any, deployer: str) -> Any:
    """Convert CLI/env string values to what eth-abi expects for a type."""
    if value == DEPLOYER_PLACEHOLDER:
        return deployer

    if type_str.endswith("]") and isinstance(value, (list, tuple)):
        inner = type_str[: type_str.rindex("[")]
        return [_coerce(inner, v, deployer) for v in value]

    if not isinstance(value, str):
        return value

    if type_str == "address":
        if not is_address(value):
            raise ConfigurationError(f"Invalid address argument: {value!r}")
        return to_checksum_address(value)
    if type_str.startswith(("uint", "int")):
        try:
            return int(value, 0)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {type_str} argument: {value!r}") from e
    if type_str == "bool":
        lowered = value.lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise ConfigurationError(f"Invalid bool argument: {value!r}")
    if type_str.startswith("bytes"):
        try:
            return bytes.fromhex(value[2:] if value.startswith("0x") else value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {type_str} argument: {value!r}") from e
    return value


def resolve_constructor_args(
    abi: List[Dict[str, Any]], args: Sequence[Any], deployer: str
) -> List[Any]:
    """
    Validate and coerce constructor arguments against the constructor ABI.

    Args:
        abi: Contract ABI
        args: Raw arguments; "$deployer" resolves to the signer address
        deployer: Checksummed signer address

    Raises:
        ConfigurationError: On count mismatch or unconvertible values
    """
    inputs = constructor_inputs(abi)
    if len(inputs) != len(args):
        raise ConfigurationError(
            f"Constructor parameters length mismatch - ABI requires {len(inputs)}, "
            f"got {len(args)}"
        )
    return [_coerce(abi_type(i), value, deployer) for i, value in zip(inputs, args)]


def encode_constructor_args(abi: List[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    """
    ABI-encode resolved constructor arguments.

    Raises:
        ConfigurationError: If a value does not match its ABI type
    """
    inputs = constructor_inputs(abi)
    types = [abi_type(i) for i in inputs]
    try:
        return encode(types, list(args))
    except (EncodingError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Cannot encode constructor arguments {types}: {e}") from e


def deployment_data(artifact: CompiledArtifact, args: Sequence[Any]) -> str:
    """Creation bytecode with encoded constructor arguments appended."""
    return artifact.bytecode + encode_constructor_args(artifact.abi, args).hex()


def constructor_owner(abi: List[Dict[str, Any]], args: Sequence[Any]) -> Optional[str]:
    """The address passed as owner to the constructor, if the ABI names one."""
    for abi_input, value in zip(constructor_inputs(abi), args):
        if abi_input.get("type") == "address" and abi_input.get("name") in OWNER_INPUT_NAMES:
            return value
    return None
