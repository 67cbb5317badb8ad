"""Filesystem helpers for assembling a bundle in its staging directory."""

from dataclasses import dataclass
import logging
import os
import pathlib
import re
import shutil
import tempfile

from electron_packager.targets import SUPPORTED_ARCHS, SUPPORTED_PLATFORMS, Target


class BuildError(RuntimeError):
    """Raised when a bundle cannot be staged or relocated."""


@dataclass(frozen=True, slots=True)
class CopyStats:
    """Stats collected while copying a directory tree.

    :ivar files_copied: Number of files copied.
    :ivar bytes_copied: Total bytes copied (best-effort).
    """

    files_copied: int
    bytes_copied: int


_RESERVED_CHARS_RE: re.Pattern[str] = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
_LEADING_DOTS_RE: re.Pattern[str] = re.compile(r"^\.+")
_REPEATED_DASH_RE: re.Pattern[str] = re.compile(r"-{2,}")
_WINDOWS_RESERVED_NAMES_RE: re.Pattern[str] = re.compile(
    r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])$", re.IGNORECASE
)
_MAX_NAME_LENGTH: int = 100

STAGING_DIRNAME: str = "electron-packager"

_IGNORED_NAMES: frozenset[str] = frozenset({".git", ".hg", ".svn", ".DS_Store"})


def sanitize_app_name(name: str) -> str:
    """Make an application name safe to use as a file name.

    Reserved and control characters become ``-``, runs of ``-`` collapse,
    leading dots and outer dashes are stripped and Windows device names get a
    ``-`` suffix.

    :param name: Application or executable name.
    :returns: File-name-safe name.
    """

    v: str = _RESERVED_CHARS_RE.sub("-", name)
    v = _LEADING_DOTS_RE.sub("-", v)
    v = _REPEATED_DASH_RE.sub("-", v)
    if len(v) > 1:
        v = v.strip("-")
    if _WINDOWS_RESERVED_NAMES_RE.match(v) is not None:
        v = v + "-"
    return v[0:_MAX_NAME_LENGTH]


def generate_final_basename(*, name: str, target: Target) -> str:
    return f"{sanitize_app_name(name)}-{target.platform}-{target.arch}"


def generate_final_path(*, out: pathlib.Path | None, name: str, target: Target) -> pathlib.Path:
    """Compute where a target's bundle ends up.

    :param out: Output root; defaults to the working directory.
    :param name: Application name.
    :param target: Packaging target.
    :returns: ``<out>/<name>-<platform>-<arch>``.
    """

    root: pathlib.Path = out if out is not None else pathlib.Path.cwd()
    return root / generate_final_basename(name=name, target=target)


def staging_root(tmpdir: pathlib.Path | None) -> pathlib.Path:
    """Directory all staging directories are created under.

    :param tmpdir: Configured temp root; defaults to the system temp directory.
    :returns: ``<tmpdir>/electron-packager``.
    """

    base: pathlib.Path = tmpdir if tmpdir is not None else pathlib.Path(tempfile.gettempdir())
    return base / STAGING_DIRNAME


def compute_stage_excludes(
    *,
    app_dir: pathlib.Path,
    out: pathlib.Path | None,
    name: str,
    tmpdir: pathlib.Path | None = None,
) -> set[str]:
    """Compute relative paths to exclude while copying app sources.

    The output root and the temp root are excluded when they live inside the
    app directory, and so is the staging root and every bundle a previous run
    could have produced there.

    :param app_dir: Application source directory.
    :param out: Output root.
    :param name: Application name.
    :param tmpdir: Temp root the staging directories are created under.
    :returns: Set of relative paths (POSIX-style) to exclude.
    """

    root_resolved: pathlib.Path = app_dir.resolve()
    out_resolved: pathlib.Path = (out if out is not None else pathlib.Path.cwd()).resolve()
    excludes: set[str] = set()

    candidates: list[pathlib.Path] = [out_resolved, staging_root(tmpdir).resolve()]
    if tmpdir is not None:
        candidates.append(tmpdir.resolve())
    for candidate in candidates:
        if candidate != root_resolved and candidate.is_relative_to(root_resolved) is True:
            excludes.add(candidate.relative_to(root_resolved).as_posix())

    for p in SUPPORTED_PLATFORMS:
        for a in SUPPORTED_ARCHS:
            final: pathlib.Path = generate_final_path(
                out=out_resolved,
                name=name,
                target=Target(platform=p, arch=a),
            )
            if final.is_relative_to(root_resolved) is True:
                excludes.add(final.relative_to(root_resolved).as_posix())

    return excludes


def copy_app_tree(*, src: pathlib.Path, dst: pathlib.Path, exclude_relpaths: set[str]) -> CopyStats:
    """Copy the app sources into the staged ``resources/app`` directory.

    VCS metadata, ``.DS_Store`` files and ``node_modules/.bin`` are skipped and
    symlinks are copied as links.

    :param src: Source directory.
    :param dst: Destination directory.
    :param exclude_relpaths: Relative paths within ``src`` to exclude.
    :returns: Copy statistics.
    """

    prefixes: list[tuple[str, ...]] = [
        pathlib.PurePosixPath(relpath).parts for relpath in sorted(exclude_relpaths)
    ]
    files_copied: int = 0
    bytes_copied: int = 0

    dst.mkdir(parents=True, exist_ok=True)

    for root_str, dirs, files in os.walk(src, topdown=True):
        root_path: pathlib.Path = pathlib.Path(root_str)
        rel_root: pathlib.PurePosixPath = pathlib.PurePosixPath(root_path.relative_to(src).as_posix())
        in_node_modules: bool = rel_root.name == "node_modules"

        dirs[:] = [
            d
            for d in dirs
            if d not in _IGNORED_NAMES
            and not (in_node_modules is True and d == ".bin")
            and _has_prefix((rel_root / d).parts, prefixes) is False
        ]

        out_dir: pathlib.Path = dst / rel_root
        out_dir.mkdir(parents=True, exist_ok=True)

        for name in files:
            if name in _IGNORED_NAMES or _has_prefix((rel_root / name).parts, prefixes) is True:
                continue
            dest_path: pathlib.Path = out_dir / name
            shutil.copy2(root_path / name, dest_path, follow_symlinks=False)
            files_copied += 1
            bytes_copied += dest_path.lstat().st_size

    return CopyStats(files_copied=files_copied, bytes_copied=bytes_copied)


def _has_prefix(parts: tuple[str, ...], prefixes: list[tuple[str, ...]]) -> bool:
    return any(parts[0 : len(p)] == p for p in prefixes if len(parts) >= len(p))


def copy_path(*, src: pathlib.Path, dst: pathlib.Path) -> None:
    """Copy a file or a whole directory tree.

    :param src: Source file or directory.
    :param dst: Destination path (created or replaced).
    :raises BuildError: If ``src`` does not exist.
    """

    if src.is_dir() is True:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
        return
    if src.is_file() is True:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
        return
    raise BuildError(f"Path to copy does not exist: {src}")


def normalize_icon_extension(
    *,
    icon: pathlib.Path,
    target_ext: str,
    logger: logging.Logger,
) -> pathlib.Path | None:
    """Swap an icon's extension for the one a platform needs.

    :param icon: Requested icon path.
    :param target_ext: Required extension including the dot (e.g. ``.ico``).
    :param logger: Logger for the missing-icon warning.
    :returns: Existing icon path, or ``None`` if the normalised file is missing.
    """

    candidate: pathlib.Path = icon
    if icon.suffix != target_ext:
        candidate = icon.with_suffix(target_ext)

    if candidate.is_file() is True:
        return candidate
    logger.warning(f'electron-packager: Could not find icon "{candidate}", not updating app icon')
    return None
