import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from metanode_deployment.exceptions import RegistryEntryNotFound
from metanode_deployment.utils import _load_json

ChainId = int
DeploymentName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class NamedDeploymentEntry(NamedTuple):
    """Represents a single named deployment: a proxy and its implementation."""

    chain_id: ChainId
    name: DeploymentName
    address: ChecksumAddress
    impl: ChecksumAddress


def read_registry(filepath: Path) -> List[NamedDeploymentEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for name, artifacts in entries.items():
            registry_entry = NamedDeploymentEntry(
                chain_id=int(chain_id),
                name=name,
                address=artifacts["address"],
                impl=artifacts["impl"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[NamedDeploymentEntry], filepath: Path) -> Path:
    """Writes a named deployment registry to a file, replacing its contents."""

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "impl": entry.impl,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


class NamedDeploymentRegistry:
    """
    Store of named deployments across script runs.

    Entries are keyed by (chain id, name); saving an existing name replaces it.
    When a filepath is given every change is persisted immediately, otherwise
    the registry lives in memory only.
    """

    def __init__(self, filepath: Optional[Path] = None):
        self.filepath = Path(filepath) if filepath else None
        self._entries: Dict[tuple, NamedDeploymentEntry] = dict()
        if self.filepath and self.filepath.exists():
            for entry in read_registry(self.filepath):
                self._entries[(entry.chain_id, entry.name)] = entry

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def save(
        self, chain_id: ChainId, name: DeploymentName, address: str, impl: str
    ) -> NamedDeploymentEntry:
        entry = NamedDeploymentEntry(
            chain_id=int(chain_id),
            name=name,
            address=to_checksum_address(address),
            impl=to_checksum_address(impl),
        )
        self._entries[(entry.chain_id, entry.name)] = entry
        self._persist()
        print(f"(i) Saved {name} ({entry.address}) to registry")
        return entry

    def get(self, name: DeploymentName, chain_id: ChainId) -> NamedDeploymentEntry:
        try:
            return self._entries[(int(chain_id), name)]
        except KeyError:
            raise RegistryEntryNotFound(
                f"No deployment named '{name}' for chain {chain_id}"
                + (f" in {self.filepath}" if self.filepath else "")
            ) from None

    def entries(self, chain_id: Optional[ChainId] = None) -> List[NamedDeploymentEntry]:
        entries = sorted(self._entries.values(), key=lambda e: (e.chain_id, e.name))
        if chain_id is None:
            return entries
        return [entry for entry in entries if entry.chain_id == int(chain_id)]

    def reset(self) -> None:
        """Forgets every entry, including the persisted ones."""
        self._entries.clear()
        if self.filepath and self.filepath.exists():
            self.filepath.unlink()

    def _persist(self) -> None:
        if self.filepath:
            write_registry(entries=list(self._entries.values()), filepath=self.filepath)
