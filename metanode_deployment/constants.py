from pathlib import Path

import metanode_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(metanode_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
CACHE_DIR = DEPLOYMENT_DIR / "cache"

#
# Networks
#

LOCAL = "local"
SEPOLIA = "sepolia"

# named account "deployer"; index into the local test accounts
DEPLOYER_ACCOUNT_INDEX = 0

#
# Environment
#

SEPOLIA_RPC_URL_ENVVAR = "SEPOLIA_RPC_URL"
PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"
PASSPHRASE_ENVVAR = "DEPLOYER_PASSPHRASE"
DEFAULT_ACCOUNT_ALIAS = "metanode-deployer"

#
# Versions
#

V1 = "V1"
V2 = "V2"

SUPPORTED_VERSIONS = [V1, V2]

STAKE_REGISTRY_PREFIX = "MetaNodeStake"
STAKE_CACHE_PREFIX = "metaNodeStake"


def registry_name(version: str) -> str:
    """Returns the registry name of the staking deployment for a version tag."""
    return f"{STAKE_REGISTRY_PREFIX}{version}"


def cache_filename(version: str) -> str:
    """Returns the cache artifact filename for a version tag."""
    return f"{STAKE_CACHE_PREFIX}{version}.json"


#
# Default initialization values
#

INITIAL_SUPPLY = 1_000_000
START_BLOCK = 8917592
END_BLOCK = 8924792
METANODE_PER_BLOCK = 100
