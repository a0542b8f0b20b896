"""Exception hierarchy for the stake deployment tooling."""

from pathlib import Path
from typing import Optional


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""


class PrerequisiteMissing(DeploymentError):
    """Raised when a step is invoked before the artifact it depends on exists."""


class RemoteCallFailed(DeploymentError):
    """Raised when a deploy, initialize or upgrade transaction fails."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")


class CacheError(DeploymentError):
    """Base exception for cache artifact errors."""

    def __init__(self, message: str, filepath: Path, version: Optional[str] = None):
        self.filepath = filepath
        self.version = version
        super().__init__(f"{message} (version={version}, file={filepath})")


class CacheArtifactMissing(CacheError, FileNotFoundError):
    """Raised when a cache artifact file does not exist."""


class CacheArtifactMalformed(CacheError, ValueError):
    """Raised when a cache artifact cannot be parsed."""


class CacheLocked(CacheError):
    """Raised when another writer holds the lock for a cache artifact."""


class ProxyInvariantViolation(DeploymentError):
    """Raised when proxy and implementation addresses do not relate as expected."""


class RegistryEntryNotFound(DeploymentError, KeyError):
    """Raised when a named deployment is not present in the registry."""
