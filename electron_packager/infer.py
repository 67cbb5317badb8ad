"""Property inference over the ``package.json`` ancestor chain.

A property descriptor names one value to look up, with ordered fallbacks. The
nearest manifest is consulted first; descriptors it cannot satisfy are retried
against the manifest above it, and so on until every descriptor resolves or
the filesystem root is reached.
"""

from dataclasses import dataclass, field
import asyncio
import logging
import pathlib
from typing import Any, Iterable

from electron_packager.resolver import find_manifest, read_manifest


@dataclass(frozen=True, slots=True)
class BareProperty:
    """A top-level manifest field, e.g. ``version``.

    :ivar name: Field name.
    """

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class DottedProperty:
    """A dependency entry, e.g. ``dependencies.electron``.

    :ivar kind: Dependency section (``dependencies``, ``devDependencies``...).
    :ivar package: Package name inside that section.
    """

    kind: str
    package: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.package}"


PropertyPath = BareProperty | DottedProperty


def parse_property_path(text: str) -> PropertyPath:
    """Parse ``name`` or ``kind.package`` into a property path.

    Only the first dot separates the kind, so scoped or dotted package names
    survive intact.

    :param text: Textual property path.
    :returns: Parsed property path.
    :raises ValueError: If the text is empty or has an empty component.
    """

    if text == "":
        raise ValueError("Empty property path.")
    kind, sep, package = text.partition(".")
    if sep == "":
        return BareProperty(name=text)
    if kind == "" or package == "":
        raise ValueError(f"Malformed property path: {text!r}")
    return DottedProperty(kind=kind, package=package)


@dataclass(frozen=True, slots=True)
class PropertyDescriptor:
    """One requested property with ordered alternatives.

    :ivar alternatives: Locations to try, first match wins.
    """

    alternatives: tuple[PropertyPath, ...]

    def __post_init__(self) -> None:
        if len(self.alternatives) == 0:
            raise ValueError("A property descriptor needs at least one alternative.")

    @classmethod
    def of(cls, *paths: str) -> "PropertyDescriptor":
        """Build a descriptor from textual paths.

        :param paths: Paths like ``productName`` or ``dependencies.electron``.
        :returns: Descriptor.
        """

        return cls(alternatives=tuple(parse_property_path(p) for p in paths))

    @property
    def key(self) -> str:
        """Key used in :class:`InferenceResult` maps (the first alternative)."""

        return str(self.alternatives[0])


@dataclass(frozen=True, slots=True)
class PropertySource:
    """Where a value was found.

    :ivar prop: The alternative that matched.
    :ivar manifest_path: Manifest file holding the value.
    :ivar manifest: Parsed content of that manifest.
    """

    prop: PropertyPath
    manifest_path: pathlib.Path
    manifest: dict[str, Any]


@dataclass(slots=True)
class InferenceResult:
    """Outcome of :func:`infer`, possibly partial.

    :ivar values: Descriptor key -> resolved value.
    :ivar sources: Descriptor key -> provenance.
    :ivar missing: Descriptors that could not be resolved, in request order.
    """

    values: dict[str, Any] = field(default_factory=dict)
    sources: dict[str, PropertySource] = field(default_factory=dict)
    missing: tuple[PropertyDescriptor, ...] = ()

    @property
    def complete(self) -> bool:
        return len(self.missing) == 0

    @property
    def missing_keys(self) -> list[str]:
        return [d.key for d in self.missing]

    def raise_for_missing(self) -> None:
        """Raise :class:`PartialInferenceError` if anything is missing.

        :raises PartialInferenceError: If ``missing`` is not empty.
        """

        if self.complete is False:
            raise PartialInferenceError(self)


class PartialInferenceError(LookupError):
    """Raised when some descriptors could not be resolved.

    :ivar result: The partial result, with ``values`` for what did resolve.
    :ivar missing_props: The unresolved descriptors.
    """

    def __init__(self, result: InferenceResult) -> None:
        self.result: InferenceResult = result
        self.missing_props: tuple[PropertyDescriptor, ...] = result.missing
        super().__init__(
            "Unable to find all properties in parent package.json files. Missing props: "
            + ", ".join(repr(d.key) for d in result.missing)
        )


def lookup_property(manifest: dict[str, Any], prop: PropertyPath) -> Any | None:
    """Read one property path from a parsed manifest.

    :param manifest: Parsed ``package.json``.
    :param prop: Property path.
    :returns: The value, or ``None`` when absent.
    """

    match prop:
        case BareProperty(name=name):
            return manifest.get(name)
        case DottedProperty(kind=kind, package=package):
            section: object = manifest.get(kind)
            if not isinstance(section, dict):
                return None
            return section.get(package)
    raise AssertionError(f"Unhandled property path: {prop!r}")


async def infer(
    descriptors: Iterable[PropertyDescriptor],
    start_dir: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> InferenceResult:
    """Collect property values from the manifests above ``start_dir``.

    :param descriptors: Properties to look up.
    :param start_dir: Directory the search starts from.
    :param logger: Optional logger for provenance output.
    :returns: The result; ``missing`` lists anything that was not found.
    """

    if logger is None:
        logger = logging.getLogger("electron_packager")

    pending: list[PropertyDescriptor] = list(descriptors)
    order: list[PropertyDescriptor] = list(pending)
    result: InferenceResult = InferenceResult()

    search_dir: pathlib.Path | None = start_dir
    while len(pending) > 0 and search_dir is not None:
        manifest_path: pathlib.Path | None = await asyncio.to_thread(find_manifest, search_dir)
        if manifest_path is None:
            break
        manifest: dict[str, Any] = await asyncio.to_thread(read_manifest, manifest_path)
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"electron-packager: reading properties from {manifest_path}")

        still_pending: list[PropertyDescriptor] = []
        for descriptor in pending:
            if _resolve_descriptor(descriptor, manifest, manifest_path, result) is False:
                still_pending.append(descriptor)
        pending = still_pending

        package_dir: pathlib.Path = manifest_path.parent
        search_dir = package_dir.parent if package_dir.parent != package_dir else None

    pending_keys: set[str] = {d.key for d in pending}
    result.missing = tuple(d for d in order if d.key in pending_keys)
    return result


def _resolve_descriptor(
    descriptor: PropertyDescriptor,
    manifest: dict[str, Any],
    manifest_path: pathlib.Path,
    result: InferenceResult,
) -> bool:
    """Try a descriptor's alternatives against one manifest.

    :param descriptor: Descriptor to resolve.
    :param manifest: Parsed manifest.
    :param manifest_path: Path of the manifest.
    :param result: Result to record a match in.
    :returns: ``True`` if an alternative matched.
    """

    for prop in descriptor.alternatives:
        value: Any | None = lookup_property(manifest, prop)
        if value is None:
            continue
        result.values[descriptor.key] = value
        result.sources[descriptor.key] = PropertySource(
            prop=prop,
            manifest_path=manifest_path,
            manifest=manifest,
        )
        return True
    return False
