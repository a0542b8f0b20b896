from collections import OrderedDict

import pytest
from ape.utils import ZERO_ADDRESS

from metanode_deployment.params import (
    Constant,
    ContractName,
    DeployerAccount,
    ProxyParameters,
    VariableContext,
    _get_contract_names,
    _process_raw_value,
    _process_raw_values,
    _resolve_params,
)
from tests.conftest import FakeAccount, FakeInstance, make_address

CONFIG = {
    "constants": {"START_BLOCK": 8917592, "METANODE_PER_BLOCK": 100},
    "contracts": [
        {"MetaNode": {"constructor": {"initialSupply": 1000000}}},
        {"MetaNodeStake": {"proxy": {"initializer": {"_MetaNode": "$MetaNode"}}}},
        "MetaNodeStakeV2",
    ],
}


@pytest.fixture
def context():
    return VariableContext(
        contract_names=_get_contract_names(CONFIG),
        contract_name="MetaNodeStake",
        constants=CONFIG["constants"],
        deployments=dict(),
        account=FakeAccount(address=make_address(0xDE)),
    )


def test_contract_names():
    assert _get_contract_names(CONFIG) == ["MetaNode", "MetaNodeStake", "MetaNodeStakeV2"]


def test_unknown_contract_rejected():
    with pytest.raises(ValueError, match="Unknown contract"):
        _get_contract_names({"contracts": ["MetaNode", "MetaNodeStakeV3"]})
    with pytest.raises(ValueError, match="Malformed"):
        _get_contract_names({"contracts": [42]})


def test_variables(context):
    assert isinstance(_process_raw_value("$deployer", context), DeployerAccount)
    assert isinstance(_process_raw_value("$START_BLOCK", context), Constant)
    assert isinstance(_process_raw_value("$MetaNode", context), ContractName)
    assert _process_raw_value(100, context) == 100
    assert _process_raw_value("plain", context) == "plain"

    with pytest.raises(ValueError):
        _process_raw_value("$UNKNOWN_CONSTANT", context)
    with pytest.raises(ValueError):
        _process_raw_value("$SomeOtherContract", context)


def test_resolution(context):
    values = _process_raw_values(
        OrderedDict(
            _MetaNode="$MetaNode",
            _startBlock="$START_BLOCK",
            _MetaNodePerBlock="$METANODE_PER_BLOCK",
            owners=["$deployer", "$MetaNode"],
        ),
        context,
    )

    # contracts resolve to the zero address until deployed
    resolved = _resolve_params(values)
    assert resolved == OrderedDict(
        _MetaNode=ZERO_ADDRESS,
        _startBlock=8917592,
        _MetaNodePerBlock=100,
        owners=[make_address(0xDE), ZERO_ADDRESS],
    )

    # deployments are shared with the context, so later resolution sees them
    context.deployments["MetaNode"] = FakeInstance(contract=None, address=make_address(0x70))
    resolved = _resolve_params(values)
    assert resolved["_MetaNode"] == make_address(0x70)
    assert resolved["owners"] == [make_address(0xDE), make_address(0x70)]


def test_deployer_without_account():
    context = VariableContext(contract_names=[], contract_name="MetaNode")
    assert DeployerAccount(context).resolve() == ZERO_ADDRESS


def test_proxy_implementation_cannot_be_configured(context):
    with pytest.raises(ProxyParameters.Invalid):
        ProxyParameters._generate_proxy_info(
            {"proxy": {"_logic": "$MetaNodeStake", "initializer": {}}}, context
        )


def test_proxy_info(context):
    proxy_info = ProxyParameters._generate_proxy_info(
        {"proxy": {"initializer": {"_startBlock": "$START_BLOCK"}}}, context
    )
    assert proxy_info.initializer == "initialize"
    assert _resolve_params(proxy_info.initializer_params) == OrderedDict(_startBlock=8917592)

    proxy_info = ProxyParameters._generate_proxy_info({"proxy": None}, context)
    assert proxy_info.initializer == "initialize"
    assert proxy_info.initializer_params == OrderedDict()
