"""Integration tests for the atxia-deploy command line."""

import json

import pytest
from click.testing import CliRunner

from atxia_deployments.cli import EXIT_FUNDING_FAILED, cli

RPC_URL = "http://test-rpc.example.com"
DEPLOYER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
FIRST_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def hardhat(node, tmp_path, monkeypatch):
    """The fake node posing as a Hardhat network that mines on demand."""
    monkeypatch.chdir(tmp_path)
    node.chain_id = 31337
    node.auto_mine = True
    return node


@pytest.fixture
def env() -> dict:
    return {
        "NETWORK": "hardhat",
        "HARDHAT_RPC_URL": RPC_URL,
        "PRIVATE_KEY": DEPLOYER_KEY,
        "ETHERSCAN_API_KEY": "",
        "CONFIRMATIONS": "",
    }


@pytest.fixture
def invoke(hardhat, env, artifacts_dir, deployments_dir):
    """Run a CLI command against the fake Hardhat node."""
    runner = CliRunner()

    def run(*args):
        dirs = ["--deployments-dir", str(deployments_dir)]
        if args[0] in ("deploy", "verify"):
            dirs += ["--artifacts-dir", str(artifacts_dir)]
        return runner.invoke(cli, [*args, *dirs], env=env)

    return run


class TestDeployCommand:
    """Test the deploy command."""

    def test_deploys_and_records(self, invoke, hardhat, deployments_dir):
        result = invoke("deploy")

        assert result.exit_code == 0, result.output
        assert f"Address: {FIRST_CONTRACT_ADDRESS}" in result.output
        assert f"Transaction: {hardhat.sent[0]['hash']}" in result.output
        assert f"Record: {deployments_dir / 'hardhat.json'}" in result.output
        assert (deployments_dir / "hardhat.json").exists()

    def test_explicit_constructor_argument(self, invoke, hardhat, deployments_dir):
        owner = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

        result = invoke("deploy", "--arg", owner)

        assert result.exit_code == 0, result.output
        with open(deployments_dir / "hardhat.json") as f:
            assert json.load(f)["owner"] == owner

    def test_insufficient_balance(self, invoke, hardhat, deployments_dir):
        hardhat.fund(DEPLOYER_ADDRESS, 0)

        result = invoke("deploy")

        assert result.exit_code == 1
        assert "Insufficient balance" in result.output
        assert not (deployments_dir / "hardhat.json").exists()

    def test_existing_record_refused(self, invoke, hardhat):
        assert invoke("deploy").exit_code == 0

        result = invoke("deploy")

        assert result.exit_code == 1
        assert "already has a deployment record" in result.output
        assert len(hardhat.sent) == 1

    def test_allow_overwrite(self, invoke, hardhat):
        invoke("deploy")

        result = invoke("deploy", "--allow-overwrite")

        assert result.exit_code == 0, result.output
        assert len(hardhat.sent) == 2

    def test_funding_failure_exit_status(self, invoke, hardhat, deployments_dir):
        """Test that a deployed but unfunded contract exits with a distinct status."""
        result = invoke("deploy", "--fund", "1000")

        assert result.exit_code == EXIT_FUNDING_FAILED
        assert "funding failed" in result.output
        assert (deployments_dir / "hardhat.json").exists()

    def test_funding(self, invoke, hardhat):
        result = invoke("deploy", "--fund", "1")

        assert result.exit_code == 0, result.output
        assert hardhat.sent[1]["value"] == 10**18

    def test_timeout_suggests_resume(self, invoke, hardhat):
        hardhat.mine_after = 10**6

        result = invoke("deploy", "--timeout", "0.05", "--poll-interval", "0.01")

        assert result.exit_code == 1
        assert f"--resume-tx {hardhat.sent[0]['hash']}" in result.output

    @pytest.mark.parametrize("amount", ["abc", "Infinity", "NaN"])
    def test_malformed_funding_amount(self, invoke, hardhat, amount):
        """Test that a bad amount is a usage error, reported before deploying."""
        result = invoke("deploy", "--fund", amount)

        assert result.exit_code == 2
        assert "Invalid value for '--fund'" in result.output
        assert hardhat.sent == []

    def test_malformed_gas_multiplier(self, invoke, hardhat):
        result = invoke("deploy", "--gas-multiplier", "lots")

        assert result.exit_code == 2
        assert "not a decimal number" in result.output
        assert hardhat.sent == []

    def test_missing_key(self, invoke, env):
        env["PRIVATE_KEY"] = ""

        result = invoke("deploy")

        assert result.exit_code == 1
        assert "PRIVATE_KEY" in result.output


class TestShowCommand:
    """Test the show command."""

    def test_prints_record(self, invoke):
        invoke("deploy")

        result = invoke("show")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["address"] == FIRST_CONTRACT_ADDRESS
        assert data["chainId"] == 31337
        assert "abi" not in data

    def test_with_abi(self, invoke):
        invoke("deploy")

        data = json.loads(invoke("show", "--abi").output)

        assert "abi" in data

    def test_no_record(self, invoke):
        result = invoke("show")

        assert result.exit_code == 1
        assert "No deployment record" in result.output


class TestVerifyCommand:
    def test_skipped_on_local_network(self, invoke, http):
        invoke("deploy")

        result = invoke("verify")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "skipped"

    def test_fully_qualified_contract(self, invoke, artifacts_dir, deployments_dir):
        """Test re-verification of a contract whose bare name is ambiguous."""
        duplicate_dir = artifacts_dir / "contracts" / "legacy" / "ATXIA.sol"
        duplicate_dir.mkdir(parents=True)
        original = artifacts_dir / "contracts" / "ATXIA.sol" / "ATXIA.json"
        (duplicate_dir / "ATXIA.json").write_text(original.read_text())

        deployed = invoke("deploy", "--contract", "contracts/ATXIA.sol:ATXIA")
        assert deployed.exit_code == 0, deployed.output
        with open(deployments_dir / "hardhat.json") as f:
            assert json.load(f)["contract"] == "contracts/ATXIA.sol:ATXIA"

        result = invoke("verify")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "skipped"
