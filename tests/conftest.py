"""Shared pytest fixtures for atxia-deployments tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import responses
import rlp
from eth_abi import encode
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from atxia_deployments.config import DeployConfig
from atxia_deployments.confirmations import ConfirmationTracker, RpcReceiptSource
from atxia_deployments.rpc import JsonRpcClient

RPC_URL = "http://test-rpc.example.com"

# First Hardhat development account; its first creation lands at a well-known address
DEPLOYER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
FIRST_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

SEPOLIA_CHAIN_ID = 11155111
ONE_ETHER = 10**18

ATXIA_ABI: List[Dict[str, Any]] = [
    {
        "type": "constructor",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "initialOwner", "type": "address", "internalType": "address"}],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256", "internalType": "uint256"}],
    },
    {
        "type": "function",
        "name": "claimInitialTokens",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address", "internalType": "address"}],
        "outputs": [],
    },
]
ATXIA_BYTECODE = "0x6080604052348015600f57600080fd5b50603f80601d6000396000f3fe"

SELECTORS = {
    "18160ddd": "totalSupply",
    "313ce567": "decimals",
    "70a08231": "balanceOf",
}


class FakeNode:
    """
    In-memory Ethereum JSON-RPC node served through ``responses``.

    Transactions are decoded from their raw bytes, included ``mine_after``
    blocks after submission and buried as ``mine()`` advances the head.
    """

    def __init__(self, chain_id: int = SEPOLIA_CHAIN_ID):
        self.chain_id = chain_id
        self.head = 100
        self.gas_price = 10 * 10**9
        self.base_fee: Optional[int] = 8 * 10**9
        self.priority_fee = 10**9
        self.balances: Dict[str, int] = {DEPLOYER_ADDRESS.lower(): 10 * ONE_ETHER}
        self.nonces: Dict[str, int] = {}
        self.gas_estimate = 500_000
        self.mine_after = 1
        self.auto_mine = False
        self.drop_transactions = False
        self.revert_transactions = False
        self.reject_with: Optional[str] = None
        self.total_supply = 1_000_000 * ONE_ETHER
        self.token_decimals = 18
        self.token_balance = 0
        self.sent: List[Dict[str, Any]] = []
        self.calls: List[str] = []

    # Test controls

    def mine(self, blocks: int = 1) -> None:
        self.head += blocks

    def fund(self, address: str, amount: int) -> None:
        self.balances[address.lower()] = amount

    # Transport

    def handle(self, request):
        body = json.loads(request.body)
        method = body["method"]
        self.calls.append(method)
        handler = getattr(self, f"_{method}", None)
        if handler is None:
            return self._error(body, -32601, f"the method {method} does not exist/is not available")
        try:
            result = handler(*body.get("params", []))
        except RpcFailure as e:
            return self._error(body, e.code, e.message)
        return (200, {}, json.dumps({"jsonrpc": "2.0", "id": body["id"], "result": result}))

    @staticmethod
    def _error(body, code, message):
        payload = {"jsonrpc": "2.0", "id": body["id"], "error": {"code": code, "message": message}}
        return (200, {}, json.dumps(payload))

    # Methods

    def _eth_chainId(self):
        return hex(self.chain_id)

    def _eth_blockNumber(self):
        return hex(self.head)

    def _eth_gasPrice(self):
        return hex(self.gas_price)

    def _eth_maxPriorityFeePerGas(self):
        if self.base_fee is None:
            raise RpcFailure(-32601, "the method eth_maxPriorityFeePerGas does not exist")
        return hex(self.priority_fee)

    def _eth_getBlockByNumber(self, block, full):
        result = {"number": hex(self.head), "timestamp": hex(1_700_000_000 + self.head)}
        if self.base_fee is not None:
            result["baseFeePerGas"] = hex(self.base_fee)
        return result

    def _eth_getBalance(self, address, block):
        return hex(self.balances.get(address.lower(), 0))

    def _eth_getTransactionCount(self, address, block):
        return hex(self.nonces.get(address.lower(), 0))

    def _eth_estimateGas(self, transaction):
        return hex(self.gas_estimate)

    def _eth_sendRawTransaction(self, raw):
        if self.reject_with is not None:
            raise RpcFailure(-32000, self.reject_with)

        transaction = decode_raw_transaction(raw)
        sender = Account.recover_transaction(raw)
        transaction["from"] = sender
        transaction["hash"] = "0x" + keccak(hexstr=raw).hex()
        transaction["block"] = self.head + self.mine_after
        if transaction["to"] is None:
            transaction["contractAddress"] = create_address(sender, transaction["nonce"])
        self.nonces[sender.lower()] = transaction["nonce"] + 1
        self.sent.append(transaction)
        return transaction["hash"]

    def _find(self, transaction_hash):
        if self.drop_transactions:
            return None
        for transaction in self.sent:
            if transaction["hash"] == transaction_hash:
                return transaction
        return None

    def _eth_getTransactionReceipt(self, transaction_hash):
        if self.auto_mine:
            self.mine()
        transaction = self._find(transaction_hash)
        if transaction is None or transaction["block"] > self.head:
            return None
        return {
            "transactionHash": transaction_hash,
            "blockNumber": hex(transaction["block"]),
            "status": "0x0" if self.revert_transactions else "0x1",
            "contractAddress": transaction.get("contractAddress"),
            "gasUsed": hex(self.gas_estimate // 2),
        }

    def _eth_getTransactionByHash(self, transaction_hash):
        transaction = self._find(transaction_hash)
        if transaction is None:
            return None
        return {"hash": transaction_hash, "nonce": hex(transaction["nonce"])}

    def _eth_call(self, transaction, block):
        selector = transaction["data"][2:10]
        name = SELECTORS.get(selector)
        if name == "totalSupply":
            return "0x" + encode(["uint256"], [self.total_supply]).hex()
        if name == "decimals":
            return "0x" + encode(["uint8"], [self.token_decimals]).hex()
        if name == "balanceOf":
            return "0x" + encode(["uint256"], [self.token_balance]).hex()
        raise RpcFailure(3, "execution reverted")


class RpcFailure(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


def decode_raw_transaction(raw: str) -> Dict[str, Any]:
    """Pull nonce/to/value/data out of a signed legacy or EIP-1559 transaction."""
    payload = bytes.fromhex(raw[2:])
    if payload[0] == 2:
        fields = rlp.decode(payload[1:])
        nonce, to, value, data = fields[1], fields[5], fields[6], fields[7]
        tx_type = 2
    else:
        fields = rlp.decode(payload)
        nonce, to, value, data = fields[0], fields[3], fields[4], fields[5]
        tx_type = 0
    return {
        "type": tx_type,
        "nonce": int.from_bytes(nonce, "big"),
        "to": to_checksum_address(to) if to else None,
        "value": int.from_bytes(value, "big"),
        "data": "0x" + data.hex(),
        "fields": fields,
    }


def create_address(sender: str, nonce: int) -> str:
    return to_checksum_address(keccak(rlp.encode([bytes.fromhex(sender[2:]), nonce]))[12:])


class FakeClock:
    """Monotonic clock whose sleep advances time and mines a block."""

    def __init__(self, node: FakeNode, blocks_per_sleep: int = 1):
        self.now = 0.0
        self.node = node
        self.blocks_per_sleep = blocks_per_sleep
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        self.node.mine(self.blocks_per_sleep)


@pytest.fixture
def http():
    """Intercept all HTTP traffic made through requests."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


@pytest.fixture
def node(http) -> FakeNode:
    """A fake Sepolia node answering JSON-RPC at RPC_URL."""
    fake = FakeNode()
    http.add_callback(
        responses.POST, RPC_URL, callback=fake.handle, content_type="application/json"
    )
    return fake


@pytest.fixture
def rpc(node) -> JsonRpcClient:
    return JsonRpcClient(RPC_URL)


@pytest.fixture
def clock(node) -> FakeClock:
    return FakeClock(node)


@pytest.fixture
def tracker(rpc, clock) -> ConfirmationTracker:
    return ConfirmationTracker(
        RpcReceiptSource(rpc), poll_interval=4.0, timeout=120.0, clock=clock.time, sleep=clock.sleep
    )


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """A Hardhat artifacts tree holding a compiled ATXIA contract."""
    root = tmp_path / "artifacts"
    contract_dir = root / "contracts" / "ATXIA.sol"
    build_info_dir = root / "build-info"
    contract_dir.mkdir(parents=True)
    build_info_dir.mkdir(parents=True)

    artifact = {
        "_format": "hh-sol-artifact-1",
        "contractName": "ATXIA",
        "sourceName": "contracts/ATXIA.sol",
        "abi": ATXIA_ABI,
        "bytecode": ATXIA_BYTECODE,
        "deployedBytecode": "0x6080",
        "linkReferences": {},
        "deployedLinkReferences": {},
    }
    (contract_dir / "ATXIA.json").write_text(json.dumps(artifact))
    (contract_dir / "ATXIA.dbg.json").write_text(
        json.dumps({"_format": "hh-sol-dbg-1", "buildInfo": "../../build-info/abc123.json"})
    )
    build_info = {
        "id": "abc123",
        "solcVersion": "0.8.26",
        "solcLongVersion": "0.8.26+commit.8a97fa7a",
        "input": {
            "language": "Solidity",
            "sources": {"contracts/ATXIA.sol": {"content": "contract ATXIA {}"}},
            "settings": {"optimizer": {"enabled": True, "runs": 1000}, "evmVersion": "london"},
        },
        "output": {},
    }
    (build_info_dir / "abc123.json").write_text(json.dumps(build_info))
    return root


@pytest.fixture
def deployments_dir(tmp_path: Path) -> Path:
    """Records directory that does not exist yet."""
    return tmp_path / "deployments"


@pytest.fixture
def config(artifacts_dir: Path, deployments_dir: Path) -> DeployConfig:
    """Sepolia configuration pointing at the fake node."""
    return DeployConfig(
        network="sepolia",
        rpc_url=RPC_URL,
        private_key=DEPLOYER_KEY,
        contract="ATXIA",
        constructor_args=["$deployer"],
        confirmations=5,
        poll_interval=4.0,
        timeout=120.0,
        explorer_api_key=None,
        deployments_dir=deployments_dir,
        artifacts_dir=artifacts_dir,
    )
