import click
import pytest
from click.testing import CliRunner

from metanode_deployment.types import ChecksumAddress, VersionTag
from tests.conftest import make_address


@click.command()
@click.option("--version", type=VersionTag())
@click.option("--address", type=ChecksumAddress())
def echo(version, address):
    click.echo(f"{version} {address}")


@pytest.mark.parametrize("value, expected", [("V1", "V1"), ("v2", "V2"), (" v1 ", "V1")])
def test_version_tag(value, expected):
    result = CliRunner().invoke(echo, ["--version", value])
    assert result.exit_code == 0
    assert result.output.split()[0] == expected


def test_unsupported_version_tag():
    result = CliRunner().invoke(echo, ["--version", "V3"])
    assert result.exit_code != 0
    assert "not a supported version" in result.output


def test_checksum_address():
    address = make_address(0xABCDEF)
    result = CliRunner().invoke(echo, ["--address", address.lower()])
    assert result.exit_code == 0
    assert result.output.split()[1] == address


def test_invalid_address():
    result = CliRunner().invoke(echo, ["--address", "0x1234"])
    assert result.exit_code != 0
    assert "not a valid ethereum address" in result.output
