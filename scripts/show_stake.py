#!/usr/bin/python3
# Usage:
#  > ape run show_stake --network ethereum:sepolia:node -v V1 -v V2

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from metanode_deployment.cache import CacheStore
from metanode_deployment.constants import (
    ARTIFACTS_DIR,
    CACHE_DIR,
    LOCAL,
    SEPOLIA,
    SUPPORTED_VERSIONS,
    V1,
    V2,
)
from metanode_deployment.contracts import STAKE_IMPLEMENTATIONS
from metanode_deployment.exceptions import CacheError, ProxyInvariantViolation
from metanode_deployment.networks import is_local_network
from metanode_deployment.options import (
    cache_dir_option,
    proxy_address_option,
    registry_filepath_option,
    version_option,
)
from metanode_deployment.registry import NamedDeploymentRegistry
from metanode_deployment.workflow import check_upgrade, read_stake_state


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@version_option
@cache_dir_option
@registry_filepath_option
@proxy_address_option
def cli(network, versions, cache_dir, registry_filepath, proxy_address):
    """Show cached stake deployments, registry entries and on-chain state."""
    network_name = LOCAL if is_local_network() else SEPOLIA
    default_cache_dir = CACHE_DIR / LOCAL if is_local_network() else CACHE_DIR
    cache = CacheStore(cache_dir or default_cache_dir)
    registry = NamedDeploymentRegistry(registry_filepath or ARTIFACTS_DIR / f"{network_name}.json")
    chain_id = networks.provider.network.chain_id
    versions = versions or SUPPORTED_VERSIONS

    records = dict()
    for version in versions:
        try:
            record = cache.read(version)
        except CacheError as e:
            print(f"{version}: {e}")
            continue
        records[version] = record
        print(
            f"{version}: proxy={record.proxy_address} "
            f"implementation={record.implementation_address} "
            f"({len(record.abi)} abi entries)"
        )

    print(f"\nRegistry entries for chain {chain_id}:")
    for entry in registry.entries(chain_id=chain_id):
        print(f"\t{entry.name}: address={entry.address} impl={entry.impl}")

    if V1 in records and V2 in records:
        try:
            check_upgrade(records[V1], records[V2])
        except ProxyInvariantViolation as e:
            print(f"\n! Upgrade invariant violated: {e}")
        else:
            print("\n(i) V2 keeps the V1 proxy address with a new implementation")

    latest_version = max(records) if records else V1
    if proxy_address is None:
        if not records:
            return
        proxy_address = records[latest_version].proxy_address

    stake = STAKE_IMPLEMENTATIONS[latest_version].container.at(proxy_address)
    state = read_stake_state(stake)
    print(f"\nStaking state at {proxy_address}:")
    for field, value in state._asdict().items():
        if field == "pools":
            continue
        print(f"\t{field}={value}")
    for pid, pool in enumerate(state.pools):
        pretty_pool = ", ".join(f"{k}={v}" for k, v in pool._asdict().items())
        print(f"\tpool[{pid}]: {pretty_pool}")


if __name__ == "__main__":
    cli()
