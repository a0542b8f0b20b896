"""
Deploy and upgrade workflows for the proxied staking contract.

Both workflows are strictly sequential pipelines: every on-chain step must be
confirmed before the next one starts, and the cache artifact and registry entry
are only written once all on-chain steps have succeeded.
"""

import typing
from typing import Any, Dict, Tuple

from metanode_deployment.cache import CacheStore, DeploymentRecord
from metanode_deployment.constants import V1, V2, registry_name
from metanode_deployment.contracts import STAKE_IMPLEMENTATIONS, StakeContract
from metanode_deployment.exceptions import (
    CacheError,
    PrerequisiteMissing,
    ProxyInvariantViolation,
)
from metanode_deployment.pipeline import Pipeline
from metanode_deployment.registry import NamedDeploymentRegistry


class PoolState(typing.NamedTuple):
    st_token_address: str
    pool_weight: int
    last_reward_block: int
    acc_metanode_per_st: int
    st_token_amount: int
    min_deposit_amount: int
    unstake_locked_blocks: int


class StakeState(typing.NamedTuple):
    """Observable state of the staking contract, compared across upgrades."""

    token: str
    start_block: int
    end_block: int
    metanode_per_block: int
    total_pool_weight: int
    pools: Tuple[PoolState, ...]


def _read_pool(stake, pid: int) -> PoolState:
    pool = stake.pool(pid)
    return PoolState(
        st_token_address=pool.stTokenAddress,
        pool_weight=pool.poolWeight,
        last_reward_block=pool.lastRewardBlock,
        acc_metanode_per_st=pool.accMetaNodePerST,
        st_token_amount=pool.stTokenAmount,
        min_deposit_amount=pool.minDepositAmount,
        unstake_locked_blocks=pool.unstakeLockedBlocks,
    )


def read_stake_state(stake) -> StakeState:
    """Reads the staking contract's configuration and every pool's accounting."""
    pools = tuple(_read_pool(stake, pid) for pid in range(stake.poolLength()))
    return StakeState(
        token=stake.MetaNode(),
        start_block=stake.startBlock(),
        end_block=stake.endBlock(),
        metanode_per_block=stake.MetaNodePerBlock(),
        total_pool_weight=stake.totalPoolWeight(),
        pools=pools,
    )


def check_proxy_indirection(record: DeploymentRecord) -> None:
    if record.proxy_address == record.implementation_address:
        raise ProxyInvariantViolation(
            f"Proxy address {record.proxy_address} equals its implementation address"
        )


def check_upgrade(previous: DeploymentRecord, upgraded: DeploymentRecord) -> None:
    """An upgrade keeps the proxy address and replaces the implementation."""
    if upgraded.proxy_address != previous.proxy_address:
        raise ProxyInvariantViolation(
            f"Proxy address changed during upgrade: "
            f"{previous.proxy_address} -> {upgraded.proxy_address}"
        )
    if upgraded.implementation_address == previous.implementation_address:
        raise ProxyInvariantViolation(
            f"Implementation address {previous.implementation_address} unchanged by upgrade"
        )
    check_proxy_indirection(upgraded)


def check_registered_proxy(
    registry: NamedDeploymentRegistry, chain_id: int, version: str, record: DeploymentRecord
) -> None:
    """The cached proxy must be the one registered under the version's name, if any."""
    name = registry_name(version)
    if (chain_id, name) not in registry:
        return
    entry = registry.get(name, chain_id=chain_id)
    if entry.address != record.proxy_address:
        raise ProxyInvariantViolation(
            f"{name} proxy in the cache ({record.proxy_address}) does not match "
            f"the registered proxy ({entry.address})"
        )


def _record(results: Dict[str, Any]) -> DeploymentRecord:
    return results["resolve implementation"]


def deploy_stake(
    deployer,
    cache: CacheStore,
    registry: NamedDeploymentRegistry,
    version: str = V1,
) -> DeploymentRecord:
    """
    Deploys the MetaNode token and the staking contract behind a proxy, then
    records the deployment under the version tag. An existing cache artifact
    for the tag is overwritten.

    The version tag stays locked from the first transaction until the
    registry entry is saved; a concurrent run raises CacheLocked.
    """
    stake_contract = STAKE_IMPLEMENTATIONS[version]
    print(f"deployer's account: {deployer.get_account().address}")

    def resolve_implementation(results) -> DeploymentRecord:
        stake = results["deploy stake proxy"]
        implementation_address = deployer.implementation_address(stake.address)
        print(f"{stake_contract.contract_name} proxy address: {stake.address}")
        print(f"{stake_contract.contract_name} implementation address: {implementation_address}")
        record = DeploymentRecord(
            proxy_address=stake.address,
            implementation_address=implementation_address,
            abi=deployer.abi(stake_contract),
        )
        check_proxy_indirection(record)
        return record

    pipeline = (
        Pipeline(name=f"{registry_name(version)} deployment")
        .remote("deploy token", lambda results: deployer.deploy(StakeContract.TOKEN))
        .remote("deploy stake proxy", lambda results: deployer.deploy(stake_contract))
        .remote("resolve implementation", resolve_implementation)
        .local("write cache", lambda results: cache.write(version, _record(results)))
        .local(
            "save registry entry",
            lambda results: registry.save(
                chain_id=deployer.chain_id,
                name=registry_name(version),
                address=_record(results).proxy_address,
                impl=_record(results).implementation_address,
            ),
        )
    )
    with cache.lock(version):
        results = pipeline.run()
    deployer.finalize(deployments=[results["deploy token"], results["deploy stake proxy"]])
    return _record(results)


def load_prerequisite(cache: CacheStore, version: str) -> DeploymentRecord:
    """Reads the record an upgrade depends on, before anything touches the chain."""
    try:
        return cache.read(version)
    except CacheError as e:
        raise PrerequisiteMissing(
            f"Cannot upgrade: no usable {version} deployment ({e}). "
            f"Deploy {registry_name(version)} first."
        ) from e


def upgrade_stake(
    deployer,
    cache: CacheStore,
    registry: NamedDeploymentRegistry,
    from_version: str = V1,
    to_version: str = V2,
) -> DeploymentRecord:
    """
    Upgrades the proxy recorded under `from_version` to the implementation of
    `to_version` and records the result under `to_version`. The previous
    artifact is never modified.
    """
    previous = load_prerequisite(cache, from_version)
    check_registered_proxy(registry, deployer.chain_id, from_version, previous)
    stake_contract = STAKE_IMPLEMENTATIONS[to_version]
    print(f"deployer's account: {deployer.get_account().address}")
    print(f"Upgrading {registry_name(from_version)} proxy at {previous.proxy_address}")

    def resolve_implementation(results) -> DeploymentRecord:
        stake = results["upgrade proxy"]
        # read the slot at the recorded proxy, not at whatever the upgrade returned
        implementation_address = deployer.implementation_address(previous.proxy_address)
        print(f"{stake_contract.contract_name} upgraded to: {stake.address}")
        print(f"{stake_contract.contract_name} implementation address: {implementation_address}")
        record = DeploymentRecord(
            proxy_address=stake.address,
            implementation_address=implementation_address,
            abi=deployer.abi(stake_contract),
        )
        check_upgrade(previous, record)
        return record

    pipeline = (
        Pipeline(name=f"{registry_name(to_version)} upgrade")
        .remote(
            "upgrade proxy",
            lambda results: deployer.upgrade(stake_contract, previous.proxy_address),
        )
        .remote("resolve implementation", resolve_implementation)
        .local("write cache", lambda results: cache.write(to_version, _record(results)))
        .local(
            "save registry entry",
            lambda results: registry.save(
                chain_id=deployer.chain_id,
                name=registry_name(to_version),
                address=_record(results).proxy_address,
                impl=_record(results).implementation_address,
            ),
        )
    )
    with cache.lock(to_version):
        results = pipeline.run()
    deployer.finalize(deployments=[results["upgrade proxy"]])
    return _record(results)
