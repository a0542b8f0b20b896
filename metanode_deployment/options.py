from pathlib import Path

import click

from metanode_deployment.types import ChecksumAddress, VersionTag

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Filepath of the YAML deployment parameters",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

account_option = click.option(
    "--account",
    "-a",
    help="Alias of the ape account used for signing on live networks",
    type=click.STRING,
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign and send transactions without prompting for confirmation",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify",
    help="Publish the deployed contracts to the block explorer",
    is_flag=True,
    default=False,
)

version_option = click.option(
    "--version",
    "-v",
    "versions",
    help="Deployment version tag(s) to inspect",
    type=VersionTag(),
    multiple=True,
    required=False,
)

cache_dir_option = click.option(
    "--cache-dir",
    "-c",
    help="Directory holding the cache artifacts",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-f",
    help="Filepath of the named deployment registry",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

proxy_address_option = click.option(
    "--proxy-address",
    help="Staking proxy address to inspect instead of the cached one",
    type=ChecksumAddress(),
    required=False,
)
