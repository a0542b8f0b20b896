#!/usr/bin/python3
# Usage:
#  > ape run upgrade_stake --network ethereum:sepolia:node --account metanode-deployer

import click
from ape.cli import ConnectedProviderCommand, network_option

from metanode_deployment.cache import CacheStore
from metanode_deployment.constants import CONSTRUCTOR_PARAMS_DIR, LOCAL, SEPOLIA, V1, V2
from metanode_deployment.networks import get_deployer_account, is_local_network
from metanode_deployment.options import (
    account_option,
    autosign_option,
    params_filepath_option,
    verify_option,
)
from metanode_deployment.params import Deployer
from metanode_deployment.registry import NamedDeploymentRegistry
from metanode_deployment.workflow import load_prerequisite, upgrade_stake


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_filepath_option
@account_option
@autosign_option
@verify_option
def cli(network, params_filepath, account, autosign, verify):
    """Upgrade the MetaNodeStake proxy recorded in the V1 cache to MetaNodeStakeV2."""
    network_name = LOCAL if is_local_network() else SEPOLIA
    params_filepath = params_filepath or CONSTRUCTOR_PARAMS_DIR / network_name / "upgrade-stake.yml"

    # fail on a missing V1 deployment before any checks, prompts or transactions
    cache = CacheStore.from_yaml(params_filepath)
    load_prerequisite(cache, V1)

    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify,
        account=get_deployer_account(alias=account),
        autosign=autosign,
    )
    registry = NamedDeploymentRegistry(deployer.registry_filepath)

    upgrade_stake(deployer=deployer, cache=cache, registry=registry, from_version=V1, to_version=V2)


if __name__ == "__main__":
    cli()
