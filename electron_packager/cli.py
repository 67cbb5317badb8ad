"""Command line interface for electron-packager-py."""

import argparse
import asyncio
import logging
import pathlib
import sys

from electron_packager.metadata import ExactVersionRequiredError, RequiredMetadataError
from electron_packager.options import BuildOptions
from electron_packager.packager import package
from electron_packager.rcedit import (
    AUTO_WRAPPER,
    DEFAULT_RCEDIT,
    InjectorError,
    MissingSystemDependencyError,
    RceditInjector,
)
from electron_packager.resolver import ResolutionError
from electron_packager.staging import BuildError
from electron_packager.targets import TargetResolutionError


_HANDLER_NAME: str = "electron-packager-cli"


def log_level_for(*, verbose: int, quiet: int) -> int:
    """Map ``-v``/``-q`` counts to a logging level.

    Quiet flags win over verbose ones: ``-q`` shows warnings and errors,
    ``-qq`` errors only, ``-v`` adds debug output.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Logging level.
    """

    if quiet > 0:
        return logging.ERROR if quiet > 1 else logging.WARNING
    return logging.DEBUG if verbose > 0 else logging.INFO


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Send the package logger's records to stderr at the requested level.

    Calling this again replaces the handler installed by a previous call and
    leaves any other handlers alone.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: The ``electron_packager`` logger.
    """

    level: int = log_level_for(verbose=verbose, quiet=quiet)
    logger: logging.Logger = logging.getLogger("electron_packager")
    for existing in [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]:
        logger.removeHandler(existing)

    handler: logging.StreamHandler = logging.StreamHandler(stream=sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def _parse_win32metadata(pairs: list[str]) -> dict[str, str] | None:
    """Parse repeated ``KEY=VALUE`` arguments.

    :param pairs: Raw arguments.
    :returns: Mapping, or ``None`` if no pairs were given.
    :raises argparse.ArgumentTypeError: If an item has no ``=``.
    """

    if len(pairs) == 0:
        return None
    metadata: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if sep == "" or key == "":
            raise argparse.ArgumentTypeError(f"Expected KEY=VALUE for --win32metadata, got {pair!r}.")
        metadata[key] = value
    return metadata


def build_options_from_args(ns: argparse.Namespace) -> BuildOptions:
    """Translate parsed ``build`` arguments into :class:`BuildOptions`.

    :param ns: Parsed arguments.
    :returns: Build options.
    """

    return BuildOptions(
        dir=ns.dir,
        name=ns.name,
        executable_name=ns.executable_name,
        app_version=ns.app_version,
        build_version=ns.build_version,
        electron_version=ns.electron_version,
        app_copyright=ns.app_copyright,
        icon=ns.icon,
        win32metadata=_parse_win32metadata(ns.win32metadata),
        platforms=tuple(ns.platform) if ns.platform else None,
        archs=tuple(ns.arch) if ns.arch else None,
        out=ns.out,
        overwrite=ns.overwrite,
        extra_resources=tuple(ns.extra_resource),
        runtime_dir=ns.runtime_dir,
        tmpdir=ns.tmpdir,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the electron-packager-py CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="electron-packager-py",
        description="Package an Electron app into per-platform bundles.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Package an app directory.",
    )
    p_build.add_argument(
        "dir",
        type=pathlib.Path,
        help="App source directory (containing package.json).",
    )
    p_build.add_argument("--name", type=str, default=None, help="Application name.")
    p_build.add_argument(
        "--executable-name",
        type=str,
        default=None,
        help="Executable base name (defaults to --name).",
    )
    p_build.add_argument("--app-version", type=str, default=None, help="Application version.")
    p_build.add_argument(
        "--build-version",
        type=str,
        default=None,
        help="Build version; sets the Windows file version.",
    )
    p_build.add_argument(
        "--electron-version",
        type=str,
        default=None,
        help="Electron version to package (inferred from package.json if omitted).",
    )
    p_build.add_argument("--app-copyright", type=str, default=None, help="Copyright string.")
    p_build.add_argument("--icon", type=pathlib.Path, default=None, help="Icon file.")
    p_build.add_argument(
        "--win32metadata",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Windows version-string entry (e.g. CompanyName=Acme). Repeatable.",
    )
    p_build.add_argument(
        "--platform",
        action="append",
        default=[],
        help="Target platform (linux, win32, all). Repeatable or comma-separated.",
    )
    p_build.add_argument(
        "--arch",
        action="append",
        default=[],
        help="Target arch (ia32, x64, armv7l, arm64, all). Repeatable or comma-separated.",
    )
    p_build.add_argument("--out", type=pathlib.Path, default=None, help="Output directory.")
    p_build.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing output directories instead of skipping them.",
    )
    p_build.add_argument(
        "--extra-resource",
        type=pathlib.Path,
        action="append",
        default=[],
        help="File or directory to copy into the resources directory. Repeatable.",
    )
    p_build.add_argument(
        "--runtime-dir",
        type=pathlib.Path,
        required=True,
        help="Directory holding extracted distributions named electron-v<version>-<platform>-<arch>.",
    )
    p_build.add_argument("--tmpdir", type=pathlib.Path, default=None, help="Staging root directory.")
    p_build.add_argument(
        "--rcedit",
        type=str,
        default=DEFAULT_RCEDIT,
        help="Path to rcedit.exe (Windows targets).",
    )
    p_build.add_argument(
        "--wine",
        type=str,
        default=AUTO_WRAPPER,
        help="Program used to run rcedit ('auto' picks wine on non-Windows hosts, 'none' runs it directly).",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        try:
            opts: BuildOptions = build_options_from_args(ns)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))
        wrapper: str | None = None if ns.wine == "none" else ns.wine
        injector: RceditInjector = RceditInjector(rcedit_path=ns.rcedit, wrapper=wrapper, logger=logger)

        try:
            paths: list[pathlib.Path] = asyncio.run(package(opts, logger=logger, injector=injector))
        except (
            BuildError,
            ExactVersionRequiredError,
            InjectorError,
            MissingSystemDependencyError,
            RequiredMetadataError,
            ResolutionError,
            TargetResolutionError,
        ) as e:
            logger.error(str(e))
            return 1

        for path in paths:
            logger.info(f"Wrote new app to {path}")
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")

