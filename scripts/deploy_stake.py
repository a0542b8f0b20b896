#!/usr/bin/python3
# Usage:
#  > ape run deploy_stake --network ethereum:sepolia:node --account metanode-deployer

import click
from ape.cli import ConnectedProviderCommand, network_option

from metanode_deployment.cache import CacheStore
from metanode_deployment.confirm import _confirm_overwrite
from metanode_deployment.constants import CONSTRUCTOR_PARAMS_DIR, LOCAL, SEPOLIA, V1
from metanode_deployment.networks import get_deployer_account, is_local_network
from metanode_deployment.options import (
    account_option,
    autosign_option,
    params_filepath_option,
    verify_option,
)
from metanode_deployment.params import Deployer
from metanode_deployment.registry import NamedDeploymentRegistry
from metanode_deployment.workflow import deploy_stake


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_filepath_option
@account_option
@autosign_option
@verify_option
def cli(network, params_filepath, account, autosign, verify):
    """Deploy the MetaNode token and the proxied MetaNodeStake contract (V1)."""
    network_name = LOCAL if is_local_network() else SEPOLIA
    params_filepath = params_filepath or CONSTRUCTOR_PARAMS_DIR / network_name / "deploy-stake.yml"

    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify,
        account=get_deployer_account(alias=account),
        autosign=autosign,
    )
    cache = CacheStore(deployer.cache_dir)
    if cache.exists(V1) and not autosign:
        _confirm_overwrite(cache.filepath(V1))
    registry = NamedDeploymentRegistry(deployer.registry_filepath)

    deploy_stake(deployer=deployer, cache=cache, registry=registry, version=V1)


if __name__ == "__main__":
    cli()
