import json
import os
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Dict, Iterator, List, NamedTuple, Set

from eth_typing import ABI, ChecksumAddress
from eth_utils import is_address, to_checksum_address

from metanode_deployment.constants import cache_filename
from metanode_deployment.exceptions import (
    CacheArtifactMalformed,
    CacheArtifactMissing,
    CacheLocked,
)
from metanode_deployment.utils import _load_yaml, get_cache_dir

PROXY_ADDRESS_KEY = "metaNodeStakeAddress"
IMPLEMENTATION_ADDRESS_KEY = "metaNodeStakeImplAddress"
ABI_KEY = "abi"

STANDARD_CACHE_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class DeploymentRecord(NamedTuple):
    """Addresses and interface of a proxied staking deployment."""

    proxy_address: ChecksumAddress
    implementation_address: ChecksumAddress
    abi: ABI

    def to_json(self) -> Dict[str, str]:
        return {
            PROXY_ADDRESS_KEY: self.proxy_address,
            IMPLEMENTATION_ADDRESS_KEY: self.implementation_address,
            # the interface is stored as an encoded string, not as nested JSON
            ABI_KEY: json.dumps(self.abi),
        }

    @classmethod
    def from_json(cls, data: Dict) -> "DeploymentRecord":
        """
        Builds a record from a deserialized cache artifact.
        Raises KeyError or ValueError when the document is incomplete or invalid.
        """
        proxy_address = data[PROXY_ADDRESS_KEY]
        implementation_address = data[IMPLEMENTATION_ADDRESS_KEY]
        for address in (proxy_address, implementation_address):
            if not is_address(address):
                raise ValueError(f"'{address}' is not a valid address")

        abi = data[ABI_KEY]
        if isinstance(abi, str):
            abi = json.loads(abi)
        if not isinstance(abi, list):
            raise ValueError("abi must be a list of interface entries")

        return cls(
            proxy_address=to_checksum_address(proxy_address),
            implementation_address=to_checksum_address(implementation_address),
            abi=abi,
        )


class CacheStore:
    """
    File-backed store of deployment records, one JSON document per version tag.
    Writes replace the whole document; nothing is merged or appended.

    `lock` guards a version tag for the length of a whole deploy or upgrade run,
    so a second run targeting the same tag fails before touching the chain.
    """

    LOCK_SUFFIX = ".lock"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._held: Set[str] = set()

    @classmethod
    def from_yaml(cls, filepath: Path) -> "CacheStore":
        """Builds the store for the cache directory named in a params file."""
        return cls(get_cache_dir(config=_load_yaml(filepath)))

    def filepath(self, version: str) -> Path:
        return self.directory / cache_filename(version)

    def lock_filepath(self, version: str) -> Path:
        filepath = self.filepath(version)
        return filepath.with_name(filepath.name + self.LOCK_SUFFIX)

    def exists(self, version: str) -> bool:
        return self.filepath(version).exists()

    def is_locked(self, version: str) -> bool:
        return self.lock_filepath(version).exists()

    @contextmanager
    def lock(self, version: str) -> Iterator[Path]:
        """
        Holds the exclusive lock for a version tag. Raises CacheLocked if
        another run already holds it.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        lock_filepath = self.lock_filepath(version)
        try:
            fd = os.open(lock_filepath, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise CacheLocked(
                f"Cache artifact is locked by another run; remove {lock_filepath} "
                "if no other deployment is running",
                filepath=self.filepath(version),
                version=version,
            ) from None

        self._held.add(version)
        try:
            try:
                os.write(fd, str(os.getpid()).encode())
            finally:
                os.close(fd)
            yield self.filepath(version)
        finally:
            self._held.discard(version)
            lock_filepath.unlink()

    def write(self, version: str, record: DeploymentRecord) -> Path:
        """
        Writes (overwrites) the record for a version tag. Takes the lock unless
        this store already holds it for the surrounding run.
        """
        if version in self._held:
            guard = nullcontext(self.filepath(version))
        else:
            guard = self.lock(version)
        with guard as filepath:
            temp_filepath = filepath.with_suffix(".temp.json")
            try:
                with open(temp_filepath, "w") as file:
                    json.dump(record.to_json(), file, **STANDARD_CACHE_JSON_FORMAT)
                os.replace(temp_filepath, filepath)
            except BaseException:
                temp_filepath.unlink(missing_ok=True)
                raise
        print(f"(i) Cache artifact for {version} written to {filepath}")
        return filepath

    def read(self, version: str) -> DeploymentRecord:
        """Reads the record for a version tag."""
        filepath = self.filepath(version)
        if not filepath.exists():
            raise CacheArtifactMissing(
                "No cache artifact found", filepath=filepath, version=version
            )
        try:
            with open(filepath, "r") as file:
                data = json.load(file)
            if not isinstance(data, dict):
                raise ValueError("cache artifact is not a JSON object")
            return DeploymentRecord.from_json(data)
        except (KeyError, ValueError) as e:
            raise CacheArtifactMalformed(
                f"Malformed cache artifact: {e}", filepath=filepath, version=version
            ) from e

    def versions(self) -> List[str]:
        """Returns the version tags with a cache artifact, in sorted order."""
        if not self.directory.exists():
            return []
        prefix, suffix = cache_filename("").rsplit(".", 1)
        versions = list()
        for filepath in sorted(self.directory.glob(f"{prefix}*.{suffix}")):
            version = filepath.name[len(prefix) : -(len(suffix) + 1)]
            if version and "." not in version:
                versions.append(version)
        return versions

    def clear(self) -> None:
        """Removes every cache artifact in the store."""
        for version in self.versions():
            self.filepath(version).unlink()
