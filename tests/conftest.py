import typing

import pytest
from eth_utils import to_checksum_address

from metanode_deployment.cache import CacheStore
from metanode_deployment.constants import CONSTRUCTOR_PARAMS_DIR, LOCAL
from metanode_deployment.contracts import StakeContract
from metanode_deployment.registry import NamedDeploymentRegistry

LOCAL_CHAIN_ID = 1337
SEPOLIA_CHAIN_ID = 11155111
DEPLOY_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / LOCAL / "deploy-stake.yml"
UPGRADE_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / LOCAL / "upgrade-stake.yml"


# Utility functions
def make_address(value: int) -> str:
    return to_checksum_address(f"0x{value:040x}")


class FakeInstance(typing.NamedTuple):
    contract: StakeContract
    address: str


class FakeAccount(typing.NamedTuple):
    address: str


class FakeDeployer:
    """
    Stands in for metanode_deployment.params.Deployer without a chain.
    Every on-chain operation is recorded in `calls`; `fail_on` names an
    operation ("deploy", "upgrade") and contract that raise instead.
    """

    def __init__(self, chain_id: int = LOCAL_CHAIN_ID, fail_on=None, keep_implementation=False):
        self.chain_id = chain_id
        self.fail_on = fail_on
        self.keep_implementation = keep_implementation
        self.calls = list()
        self.implementations = dict()
        self._next_address = 0x1000

    def _address(self) -> str:
        self._next_address += 1
        return make_address(self._next_address)

    def _call(self, operation: str, contract: StakeContract) -> None:
        self.calls.append((operation, contract))
        if self.fail_on == (operation, contract):
            raise RuntimeError("execution reverted")

    def get_account(self):
        return FakeAccount(address=make_address(0xDE))

    def deploy(self, contract: StakeContract) -> FakeInstance:
        self._call("deploy", contract)
        if contract in (StakeContract.STAKE, StakeContract.STAKE_V2):
            implementation = self._address()
            proxy = self._address()
            self.implementations[proxy] = implementation
            return FakeInstance(contract=contract, address=proxy)
        return FakeInstance(contract=contract, address=self._address())

    def upgrade(self, contract: StakeContract, proxy_address: str) -> FakeInstance:
        self._call("upgrade", contract)
        if not self.keep_implementation:
            self.implementations[proxy_address] = self._address()
        return FakeInstance(contract=contract, address=proxy_address)

    def implementation_address(self, proxy_address: str) -> str:
        self.calls.append(("implementation_address", proxy_address))
        return self.implementations[proxy_address]

    def abi(self, contract: StakeContract) -> list:
        return [
            {"type": "function", "name": "initialize", "stateMutability": "nonpayable"},
            {"type": "function", "name": contract.contract_name, "stateMutability": "view"},
        ]

    def finalize(self, deployments) -> None:
        self.calls.append(("finalize", tuple(d.address for d in deployments)))

    @property
    def chain_calls(self) -> list:
        return [call for call in self.calls if call[0] in ("deploy", "upgrade")]


# Fixtures
@pytest.fixture
def creator(accounts):
    return accounts[0]


@pytest.fixture
def account1(accounts):
    return accounts[1]


@pytest.fixture
def cache(tmp_path) -> CacheStore:
    return CacheStore(tmp_path / "cache")


@pytest.fixture
def registry(tmp_path) -> NamedDeploymentRegistry:
    return NamedDeploymentRegistry(tmp_path / "artifacts" / "local.json")


@pytest.fixture
def fake_deployer() -> FakeDeployer:
    return FakeDeployer()
