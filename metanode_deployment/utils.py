import json
import os
from pathlib import Path
from typing import Dict, List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance
from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from metanode_deployment.constants import ARTIFACTS_DIR, CACHE_DIR
from metanode_deployment.networks import check_rpc_endpoint, is_local_network


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def get_cache_dir(config: Dict) -> Path:
    """Returns the directory holding the cache artifacts."""
    cache_config = config.get("cache") or {}
    return Path(cache_config.get("dir", CACHE_DIR))


def validate_config(config: Dict) -> Path:
    """
    Checks that the params file is complete and targets the connected chain.
    Returns the registry filepath.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    chain_mismatch = config_chain_id != networks.provider.network.chain_id
    live_deployment = not is_local_network()
    if chain_mismatch and live_deployment:
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({networks.provider.network.chain_id})."
        )

    return get_artifact_filepath(config=config)


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar)
    if not api_key:
        raise ValueError(f"{explorer_envvar} is not set.")


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        address = instance.address
        proxy_info = networks.provider.network.ecosystem.get_proxy_info(address)
        if proxy_info:
            # we have an instance of a proxy contract, but need the underlying implementation
            print(f"Proxy contract detected; verifying implementation contract at {proxy_info.target}")
            address = proxy_info.target
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(address)


def check_plugins(verify: bool) -> None:
    print("Checking plugins...")
    check_rpc_endpoint()
    if verify:
        check_etherscan_plugin()


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_implementation_address(proxy_address: str) -> ChecksumAddress:
    """Returns the implementation address stored in an EIP1967 proxy."""
    proxy_info = networks.provider.network.ecosystem.get_proxy_info(proxy_address)
    if proxy_info is None:
        raise ValueError(
            f"No implementation found for contract at {proxy_address}. "
            "Are you sure this is an EIP1967-compatible proxy?"
        )
    return to_checksum_address(proxy_info.target)
