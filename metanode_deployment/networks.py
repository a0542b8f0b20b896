import os

from ape import accounts, networks
from ape.api import AccountAPI
from ape.cli.choices import select_account
from dotenv import load_dotenv

from metanode_deployment.constants import (
    DEPLOYER_ACCOUNT_INDEX,
    LOCAL,
    SEPOLIA,
    SEPOLIA_RPC_URL_ENVVAR,
)


def is_local_network() -> bool:
    """Returns True when connected to a local development network."""
    return networks.provider.network.name.startswith(LOCAL)


def check_rpc_endpoint() -> None:
    """
    Checks that the RPC endpoint for the connected live network is configured.
    Environment variables may be provided through a .env file.
    """
    if is_local_network():
        return  # unnecessary for local deployment
    load_dotenv()
    if networks.provider.network.name == SEPOLIA and not os.environ.get(SEPOLIA_RPC_URL_ENVVAR):
        raise ValueError(f"{SEPOLIA_RPC_URL_ENVVAR} is not set.")


def get_deployer_account(alias: str = None) -> AccountAPI:
    """
    Returns the signing account.
    Local networks use the named deployer test account; live networks load the
    account by alias, or prompt for one.
    """
    if is_local_network():
        return accounts.test_accounts[DEPLOYER_ACCOUNT_INDEX]
    if alias:
        return accounts.load(alias)
    return select_account()
