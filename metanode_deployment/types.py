import click
from eth_utils import to_checksum_address

from metanode_deployment.constants import SUPPORTED_VERSIONS


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        try:
            value = to_checksum_address(value=value)
        except ValueError:
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        else:
            return value


class VersionTag(click.ParamType):
    """Deployment version tag, case-insensitive (e.g. v1 -> V1)."""

    name = "version_tag"

    def convert(self, value, param, ctx):
        tag = str(value).strip().upper()
        if tag not in SUPPORTED_VERSIONS:
            self.fail(
                f"{value} is not a supported version; expected one of {SUPPORTED_VERSIONS}",
                param,
                ctx,
            )
        return tag
