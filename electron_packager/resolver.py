"""Installed-package lookup.

Mirrors the ancestor ``node_modules`` search used by Node's module resolution:
starting at a base directory, every ancestor's ``node_modules/<name>`` folder is
checked until one holds a usable package.
"""

from dataclasses import dataclass
import asyncio
import json
import pathlib
from typing import Any

MANIFEST_NAME: str = "package.json"


class ResolutionError(RuntimeError):
    """Raised when a package or manifest cannot be located or read."""


@dataclass(frozen=True, slots=True)
class PackageReference:
    """An installed package found by :func:`resolve_package`.

    :ivar entry_path: Resolved entry file of the package.
    :ivar manifest: Parsed ``package.json`` of the package.
    :ivar manifest_path: Path of that ``package.json``.
    """

    entry_path: pathlib.Path
    manifest: dict[str, Any]
    manifest_path: pathlib.Path

    @property
    def package_dir(self) -> pathlib.Path:
        return self.manifest_path.parent

    @property
    def version(self) -> str | None:
        value: object = self.manifest.get("version")
        if isinstance(value, str):
            return value
        return None


def read_manifest(path: pathlib.Path) -> dict[str, Any]:
    """Read and parse a ``package.json`` file.

    :param path: Manifest path.
    :returns: Parsed JSON object.
    :raises ResolutionError: If the file cannot be read or is not a JSON object.
    """

    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ResolutionError(f"Could not read manifest {path}: {e}") from e
    try:
        data: object = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResolutionError(f"Invalid JSON in manifest {path}: {e}") from e
    if not isinstance(data, dict):
        raise ResolutionError(f"Manifest {path} is not a JSON object.")
    return data


def find_manifest(start: pathlib.Path) -> pathlib.Path | None:
    """Find the nearest ``package.json`` at or above a directory.

    :param start: Directory to start from.
    :returns: Manifest path, or ``None`` if no ancestor has one.
    """

    current: pathlib.Path = start.resolve()
    for candidate_dir in (current, *current.parents):
        candidate: pathlib.Path = candidate_dir / MANIFEST_NAME
        if candidate.is_file() is True:
            return candidate
    return None


def node_modules_paths(basedir: pathlib.Path) -> list[pathlib.Path]:
    """List ``node_modules`` directories searched from ``basedir``, nearest first.

    :param basedir: Directory the lookup starts from.
    :returns: Candidate ``node_modules`` directories.
    """

    start: pathlib.Path = basedir.resolve()
    dirs: list[pathlib.Path] = []
    for d in (start, *start.parents):
        if d.name == "node_modules":
            continue
        dirs.append(d / "node_modules")
    return dirs


async def resolve_package(name: str, basedir: pathlib.Path) -> PackageReference:
    """Resolve an installed package by name.

    :param name: Package name (scoped names like ``@scope/pkg`` are allowed).
    :param basedir: Directory the lookup starts from.
    :returns: The resolved package.
    :raises ResolutionError: If no usable package is reachable from ``basedir``.
    """

    return await asyncio.to_thread(_resolve_package_sync, name, basedir)


def _resolve_package_sync(name: str, basedir: pathlib.Path) -> PackageReference:
    """Blocking body of :func:`resolve_package`.

    :param name: Package name.
    :param basedir: Directory the lookup starts from.
    :returns: The resolved package.
    :raises ResolutionError: If nothing matches.
    """

    if name == "" or name.startswith((".", "/")):
        raise ResolutionError(f"Not a package name: {name!r}")

    for modules_dir in node_modules_paths(basedir):
        package_dir: pathlib.Path = modules_dir / name
        manifest_path: pathlib.Path = package_dir / MANIFEST_NAME
        if manifest_path.is_file() is False:
            continue
        manifest: dict[str, Any] = read_manifest(manifest_path)
        entry: pathlib.Path | None = _resolve_entry(package_dir, manifest)
        if entry is None:
            continue
        return PackageReference(entry_path=entry, manifest=manifest, manifest_path=manifest_path)

    raise ResolutionError(f"Cannot find module '{name}' from '{basedir}'")


def _resolve_entry(package_dir: pathlib.Path, manifest: dict[str, Any]) -> pathlib.Path | None:
    """Resolve the entry file of an installed package.

    :param package_dir: Package directory.
    :param manifest: Parsed package manifest.
    :returns: Entry file path, or ``None`` if the package has no loadable entry.
    """

    candidates: list[pathlib.Path] = []
    main: object = manifest.get("main")
    if isinstance(main, str) and main.strip() != "":
        main_path: pathlib.Path = package_dir / main
        candidates.extend(
            [
                main_path,
                main_path.with_name(main_path.name + ".js"),
                main_path.with_name(main_path.name + ".json"),
                main_path / "index.js",
                main_path / "index.json",
            ]
        )
    candidates.extend([package_dir / "index.js", package_dir / "index.json"])

    for candidate in candidates:
        if candidate.is_file() is True:
            return candidate.resolve()
    return None
