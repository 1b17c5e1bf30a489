"""Load RBAC configuration objects from YAML/JSON manifests.

Paths may be files or directories. Directories are read like a conf.d
directory: ``*.yaml`` then ``*.yml`` then ``*.json``, each group sorted
alphabetically so the resulting binding order is deterministic. A file may
hold several YAML documents, and a ``kind: List`` document may wrap objects
in ``items``.

Example:
    >>> from mesh_rbac.core.rbac.loader import load_snapshot
    >>> snapshot = load_snapshot(["conf/policies"])
    >>> snapshot.version
    'sha256:3f0c1a9e5b7d'
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
import yaml

from mesh_rbac.core.exceptions import ConfigurationError, NotFoundException
from mesh_rbac.core.rbac.admission import AdmissionValidator
from mesh_rbac.core.rbac.constants import Kind
from mesh_rbac.core.rbac.models import (
    RbacConfigObject,
    ServiceRoleBindingObject,
    ServiceRoleObject,
)
from mesh_rbac.core.rbac.snapshot import PolicySnapshot

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from mesh_rbac.core.rbac.models import ConfigObject

__all__ = [
    "LoadedManifests",
    "discover_manifest_files",
    "load_manifests",
    "load_snapshot",
    "parse_document",
]

logger = logging.getLogger(__name__)

_MODELS: dict[str, type[ConfigObject]] = {
    Kind.SERVICE_ROLE.value: ServiceRoleObject,
    Kind.SERVICE_ROLE_BINDING.value: ServiceRoleBindingObject,
    Kind.RBAC_CONFIG.value: RbacConfigObject,
}

_MANIFEST_PATTERNS = ("*.yaml", "*.yml", "*.json")


@dataclass(frozen=True)
class LoadedManifests:
    """Parsed objects plus a content digest of the source files."""

    objects: tuple[ConfigObject, ...] = ()
    digest: str = ""
    files: tuple[Path, ...] = ()

    def __iter__(self) -> Iterator[ConfigObject]:
        return iter(self.objects)

    def __len__(self) -> int:
        return len(self.objects)


def discover_manifest_files(paths: Iterable[str | Path]) -> list[Path]:
    """Expand files and directories into the ordered list of manifest files.

    Raises:
        NotFoundException: If a path does not exist.
    """
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for pattern in _MANIFEST_PATTERNS:
                files.extend(sorted(path.glob(pattern)))
        elif path.is_file():
            files.append(path)
        else:
            raise NotFoundException(
                detail=f"Policy path {path} does not exist",
                type="policy-path-not-found",
                extra={"path": str(path)},
            )
    return files


def parse_document(
    document: Any,
    source: str = "<memory>",
    default_namespace: str = "default",
) -> list[ConfigObject]:
    """Parse one decoded YAML/JSON document into configuration objects.

    Args:
        document: Decoded document (a mapping, or None for an empty document).
        source: Where the document came from, for error messages.
        default_namespace: Namespace applied when metadata omits one.

    Raises:
        ConfigurationError: On unknown kinds or schema violations.
    """
    if document is None:
        return []
    if not isinstance(document, dict):
        raise ConfigurationError(
            f"{source}: expected a mapping, got {type(document).__name__}",
            object_ref=source,
        )

    kind = document.get("kind")
    if kind == "List":
        objects: list[ConfigObject] = []
        for index, item in enumerate(document.get("items") or []):
            objects.extend(parse_document(item, f"{source}#items[{index}]", default_namespace))
        return objects

    model = _MODELS.get(kind) if isinstance(kind, str) else None
    if model is None:
        raise ConfigurationError(
            f"{source}: unsupported kind {kind!r}; expected one of {sorted(_MODELS)}",
            object_ref=source,
        )

    payload = dict(document)
    metadata = payload.get("metadata")
    if isinstance(metadata, dict) and not metadata.get("namespace"):
        payload["metadata"] = {**metadata, "namespace": default_namespace}

    try:
        return [model.model_validate(payload)]
    except ValidationError as exc:
        name = metadata.get("name") if isinstance(metadata, dict) else None
        object_ref = f"{kind} {name}" if name else f"{kind} in {source}"
        errors = [
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ConfigurationError(
            f"{source}: {object_ref} does not match the schema",
            object_ref=object_ref,
            errors=errors,
            extra={"source": source},
        ) from exc


def load_manifests(
    paths: Iterable[str | Path],
    default_namespace: str = "default",
) -> LoadedManifests:
    """Read and parse every manifest found under ``paths``.

    Raises:
        NotFoundException: If a path does not exist.
        ConfigurationError: If a file cannot be parsed.
    """
    digest = hashlib.sha256()
    objects: list[ConfigObject] = []

    files = discover_manifest_files(paths)
    for path in files:
        content = path.read_bytes()
        digest.update(content)
        for index, document in enumerate(_iter_documents(content, path)):
            objects.extend(
                parse_document(document, f"{path}#{index}", default_namespace=default_namespace)
            )
        logger.debug("Loaded RBAC manifest %s", path)

    return LoadedManifests(
        objects=tuple(objects),
        digest=f"sha256:{digest.hexdigest()[:12]}",
        files=tuple(files),
    )


def load_snapshot(
    paths: Iterable[str | Path],
    *,
    validate: bool = True,
    default_namespace: str = "default",
    validator: AdmissionValidator | None = None,
) -> PolicySnapshot:
    """Load manifests, run admission validation and build a snapshot.

    Args:
        paths: Manifest files or directories.
        validate: Run admission validation before indexing.
        default_namespace: Namespace applied when metadata omits one.
        validator: Custom validator; defaults to ``AdmissionValidator()``.

    Raises:
        NotFoundException: If a path does not exist.
        ConfigurationError: If a manifest is malformed.
        RbacConfigConflictError: If more than one RbacConfig is defined.
    """
    manifests = load_manifests(paths, default_namespace=default_namespace)
    if validate:
        (validator or AdmissionValidator()).validate_all(manifests)
    snapshot = PolicySnapshot.build(manifests, version=manifests.digest)
    logger.info(
        "Loaded RBAC policy snapshot",
        extra={"snapshot_version": snapshot.version, "object_count": len(snapshot)},
    )
    return snapshot


def _iter_documents(content: bytes, path: Path) -> Iterator[Any]:
    try:
        yield from yaml.safe_load_all(content)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"{path}: invalid YAML: {exc}",
            object_ref=str(path),
            extra={"source": str(path)},
        ) from exc
