import json

import pytest

from metanode_deployment.exceptions import RegistryEntryNotFound
from metanode_deployment.registry import (
    NamedDeploymentEntry,
    NamedDeploymentRegistry,
    read_registry,
)
from tests.conftest import LOCAL_CHAIN_ID, SEPOLIA_CHAIN_ID, make_address


def test_save_and_get(registry):
    address, impl = make_address(0xA1), make_address(0xB1)
    entry = registry.save(
        chain_id=LOCAL_CHAIN_ID, name="MetaNodeStakeV1", address=address.lower(), impl=impl
    )

    assert entry == NamedDeploymentEntry(
        chain_id=LOCAL_CHAIN_ID, name="MetaNodeStakeV1", address=address, impl=impl
    )
    assert registry.get("MetaNodeStakeV1", chain_id=LOCAL_CHAIN_ID) == entry
    assert len(registry) == 1


def test_get_unknown_name(registry):
    registry.save(
        chain_id=LOCAL_CHAIN_ID,
        name="MetaNodeStakeV1",
        address=make_address(0xA1),
        impl=make_address(0xB1),
    )
    with pytest.raises(RegistryEntryNotFound):
        registry.get("MetaNodeStakeV2", chain_id=LOCAL_CHAIN_ID)
    with pytest.raises(RegistryEntryNotFound):
        registry.get("MetaNodeStakeV1", chain_id=SEPOLIA_CHAIN_ID)


def test_save_replaces_existing_name(registry):
    registry.save(LOCAL_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA1), make_address(0xB1))
    registry.save(LOCAL_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA2), make_address(0xB2))

    entry = registry.get("MetaNodeStakeV1", chain_id=LOCAL_CHAIN_ID)
    assert entry.address == make_address(0xA2)
    assert entry.impl == make_address(0xB2)
    assert len(registry) == 1


def test_persisted_across_instances(registry):
    registry.save(SEPOLIA_CHAIN_ID, "MetaNodeStakeV2", make_address(0xA1), make_address(0xB2))
    registry.save(LOCAL_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA1), make_address(0xB1))
    registry.save(SEPOLIA_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA1), make_address(0xB1))

    with open(registry.filepath) as file:
        data = json.load(file)
    assert set(data) == {str(SEPOLIA_CHAIN_ID), str(LOCAL_CHAIN_ID)}
    assert list(data[str(SEPOLIA_CHAIN_ID)]) == ["MetaNodeStakeV1", "MetaNodeStakeV2"]
    assert data[str(LOCAL_CHAIN_ID)]["MetaNodeStakeV1"] == {
        "address": make_address(0xA1),
        "impl": make_address(0xB1),
    }

    reloaded = NamedDeploymentRegistry(registry.filepath)
    assert reloaded.entries() == registry.entries()
    assert [e.name for e in reloaded.entries(chain_id=SEPOLIA_CHAIN_ID)] == [
        "MetaNodeStakeV1",
        "MetaNodeStakeV2",
    ]
    assert len(read_registry(registry.filepath)) == 3


def test_reset(registry):
    registry.save(LOCAL_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA1), make_address(0xB1))
    assert registry.filepath.exists()

    registry.reset()
    assert len(registry) == 0
    assert not registry.filepath.exists()
    assert NamedDeploymentRegistry(registry.filepath).entries() == []


def test_in_memory_registry(tmp_path):
    registry = NamedDeploymentRegistry()
    registry.save(LOCAL_CHAIN_ID, "MetaNodeStakeV1", make_address(0xA1), make_address(0xB1))

    assert (LOCAL_CHAIN_ID, "MetaNodeStakeV1") in registry
    assert registry.filepath is None
    assert list(tmp_path.iterdir()) == []
