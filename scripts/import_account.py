#!/usr/bin/env python3
# Usage:
#  > ape run import_account

import os

from ape_accounts import import_account_from_private_key
from dotenv import load_dotenv

from metanode_deployment.constants import (
    DEFAULT_ACCOUNT_ALIAS,
    PASSPHRASE_ENVVAR,
    PRIVATE_KEY_ENVVAR,
)


def main(alias: str = DEFAULT_ACCOUNT_ALIAS):
    """Imports the deployer's private key as an ape keyfile account."""
    load_dotenv(override=True)
    try:
        passphrase = os.environ[PASSPHRASE_ENVVAR]
        private_key = os.environ[PRIVATE_KEY_ENVVAR]
    except KeyError:
        raise Exception(
            "There are missing environment variables. "
            f"Please set {PASSPHRASE_ENVVAR} and {PRIVATE_KEY_ENVVAR}."
        )
    account = import_account_from_private_key(alias, passphrase, private_key)
    print(f"Account imported: {account.address}")


if __name__ == "__main__":
    main()
