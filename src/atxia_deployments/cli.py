"""Command line entry point: atxia-deploy."""

import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

import click

from .artifacts import ArtifactLoader, resolve_constructor_args
from .config import DeployConfig
from .constants import NETWORK_CONFIG
from .exceptions import DeploymentError
from .orchestrator import DeploymentOrchestrator
from .records import DeploymentRecordStore
from .types import ConfirmedDeployment, DeploymentRecord, NetworkContext, VerificationStatus
from .verification import VerificationRequester

# Exit status when the contract is deployed and recorded but funding failed
EXIT_FUNDING_FAILED = 2


class DecimalAmount(click.ParamType):
    """A finite decimal such as a funding amount or gas multiplier."""

    name = "decimal"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            amount = value
        else:
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                self.fail(f"{value!r} is not a decimal number", param, ctx)
        if not amount.is_finite():
            self.fail(f"{value!r} is not a finite number", param, ctx)
        return amount


DECIMAL = DecimalAmount()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(error: DeploymentError) -> click.ClickException:
    """An unrecovered failure, with whatever chain context is known."""
    message = str(error)
    context = error.context()
    if context:
        message += f"\n({context})"
    if error.transaction_hash and error.address is None:
        message += (
            "\nCheck the transaction on chain before resubmitting; "
            f"resume with --resume-tx {error.transaction_hash} once it is mined."
        )
    return click.ClickException(message)


def _load_config(env_file, network, **overrides) -> DeployConfig:
    try:
        config = DeployConfig.from_env(dotenv_path=env_file, network=network)
        return config.replace(**overrides)
    except DeploymentError as e:
        raise _fail(e) from e


def _record_context(record: DeploymentRecord, network: str) -> NetworkContext:
    """Network context rebuilt from a record; no RPC endpoint needed."""
    network_config = NETWORK_CONFIG[network]
    return NetworkContext(
        chain_id=record.chain_id,
        name=network,
        signer_address=record.owner,
        local=network_config["local"],
        block_explorer_url=network_config["block_explorer_url"],
    )


network_option = click.option(
    "--network",
    "-n",
    type=click.Choice(sorted(NETWORK_CONFIG)),
    default=None,
    help="Target network (defaults to $NETWORK or sepolia)",
)
env_file_option = click.option(
    "--env-file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=None,
    help=".env file to read (defaults to ./.env when present)",
)
deployments_dir_option = click.option(
    "--deployments-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding <network>.json deployment records",
)
artifacts_dir_option = click.option(
    "--artifacts-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Hardhat artifacts directory",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Debug logging")


@click.group()
def cli():
    """Deploy the ATXIA contract and keep per-network deployment records."""


@cli.command()
@network_option
@click.option("--contract", "-c", default=None, help="Contract name or path/To.sol:Name")
@click.option(
    "--arg",
    "args",
    multiple=True,
    help="Constructor argument, in order; '$deployer' is the signer address",
)
@click.option(
    "--fund", "funding_amount", type=DECIMAL, default=None, help="Amount to seed the contract with"
)
@click.option(
    "--treasury-token", default=None, help="ERC-20 used for funding (native coin if unset)"
)
@click.option("--confirmations", type=click.IntRange(min=1), default=None, help="Required depth")
@click.option("--timeout", type=float, default=None, help="Confirmation timeout in seconds")
@click.option("--poll-interval", type=float, default=None, help="Receipt polling interval in seconds")
@click.option("--gas-price", type=int, default=None, help="Explicit gas price in wei")
@click.option("--gas-limit", type=int, default=None, help="Gas limit (estimated if unset)")
@click.option(
    "--gas-multiplier", type=DECIMAL, default=None, help="Safety multiplier over suggested gas"
)
@click.option("--no-verify", is_flag=True, help="Do not submit sources to the block explorer")
@click.option("--allow-overwrite", is_flag=True, help="Replace an existing deployment record")
@click.option(
    "--resume-tx", default=None, help="Resume from an already submitted creation transaction"
)
@deployments_dir_option
@artifacts_dir_option
@env_file_option
@verbose_option
def deploy(network, args, no_verify, allow_overwrite, resume_tx, env_file, verbose, **overrides):
    """Deploy a contract and record it for the network."""
    _configure_logging(verbose)
    config = _load_config(
        env_file,
        network,
        constructor_args=list(args) if args else None,
        verify=False if no_verify else None,
        allow_overwrite=True if allow_overwrite else None,
        **overrides,
    )

    try:
        orchestrator = DeploymentOrchestrator.from_config(config)
        result = orchestrator.run(config.to_request(), transaction_hash=resume_tx)
    except DeploymentError as e:
        raise _fail(e) from e

    click.echo(f"Address: {result.record.address}")
    click.echo(f"Transaction: {result.record.transaction_hash}")
    click.echo(f"Record: {result.record_path}")

    if result.verification.status is VerificationStatus.FAILED:
        click.echo(f"Warning: verification failed: {result.verification.reason}", err=True)
    if result.funding_error is not None:
        click.echo(f"Warning: funding failed: {result.funding_error}", err=True)
        click.get_current_context().exit(EXIT_FUNDING_FAILED)


@cli.command()
@network_option
@deployments_dir_option
@artifacts_dir_option
@env_file_option
@verbose_option
def verify(network, deployments_dir, artifacts_dir, env_file, verbose):
    """Submit a recorded deployment for source verification again."""
    _configure_logging(verbose)
    config = _load_config(
        env_file, network, deployments_dir=deployments_dir, artifacts_dir=artifacts_dir
    )

    try:
        record = DeploymentRecordStore(config.deployments_dir).load(config.network)
        artifact = ArtifactLoader(config.artifacts_dir).load(record.contract or config.contract)
        args = resolve_constructor_args(artifact.abi, record.constructor_args or [], record.owner)
    except DeploymentError as e:
        raise _fail(e) from e

    deployment = ConfirmedDeployment(
        address=record.address,
        transaction_hash=record.transaction_hash,
        confirmations=record.confirmations or 0,
        block_number=record.block_number or 0,
    )
    outcome = VerificationRequester(config.explorer_api_key).request(
        deployment, artifact, args, _record_context(record, config.network)
    )
    click.echo(json.dumps(outcome.to_dict()))
    if outcome.status is VerificationStatus.FAILED:
        click.get_current_context().exit(1)


@cli.command("verify-status")
@click.argument("guid")
@network_option
@deployments_dir_option
@env_file_option
def verify_status(guid, network, deployments_dir, env_file):
    """Look up a submitted verification once."""
    _configure_logging(False)
    config = _load_config(env_file, network, deployments_dir=deployments_dir)
    try:
        record = DeploymentRecordStore(config.deployments_dir).load(config.network)
    except DeploymentError as e:
        raise _fail(e) from e

    outcome = VerificationRequester(config.explorer_api_key).check_status(
        guid, _record_context(record, config.network)
    )
    click.echo(json.dumps(outcome.to_dict()))


@cli.command()
@network_option
@deployments_dir_option
@env_file_option
@click.option("--abi/--no-abi", default=False, help="Include the ABI")
def show(network, deployments_dir, env_file, abi):
    """Print the deployment record of a network."""
    config = _load_config(env_file, network, deployments_dir=deployments_dir)
    try:
        record = DeploymentRecordStore(config.deployments_dir).load(config.network)
    except DeploymentError as e:
        raise _fail(e) from e

    data = record.to_json()
    if not abi:
        data.pop("abi", None)
    click.echo(json.dumps(data, indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
