"""Windows executable metadata injection via ``rcedit``.

``rcedit`` is a Windows program; on other hosts it runs under ``wine``. The
options mapping uses rcedit's own option names:

- ``version-string``: mapping of string-table entries (``ProductName``...)
- ``file-version`` / ``product-version``
- ``icon``: path to an ``.ico`` file
- ``requested-execution-level`` / ``application-manifest``
"""

import asyncio
import json
import logging
import pathlib
import sys
from typing import Any, Mapping

DEFAULT_RCEDIT: str = "rcedit.exe"
DEFAULT_WRAPPER: str = "wine"
AUTO_WRAPPER: str = "auto"

WINE_MISSING_MESSAGE: str = (
    'Could not find "wine" on your system.\n\n'
    "Wine is required to use the appCopyright, appVersion, buildVersion, icon, and \n"
    "win32metadata parameters for Windows targets.\n\n"
    'Make sure that the "wine" executable is in your PATH.\n\n'
    "See https://github.com/electron/packager#building-windows-apps-from-non-windows-platforms for details."
)

_PAIR_SETTINGS: tuple[str, ...] = ("version-string",)
_SINGLE_SETTINGS: tuple[str, ...] = (
    "file-version",
    "product-version",
    "icon",
    "requested-execution-level",
)
_NO_PREFIX_SETTINGS: tuple[str, ...] = ("application-manifest",)


class InjectorError(RuntimeError):
    """Raised when ``rcedit`` exits unsuccessfully.

    :ivar returncode: Process exit status.
    :ivar stderr: Captured standard error.
    """

    def __init__(self, message: str, *, returncode: int, stderr: str) -> None:
        super().__init__(message)
        self.returncode: int = returncode
        self.stderr: str = stderr


class MissingSystemDependencyError(RuntimeError):
    """Raised when the program ``rcedit`` needs to run is not installed."""


def default_wrapper() -> str | None:
    """Return the program ``rcedit`` must run under on this host.

    :returns: ``wine`` on non-Windows hosts, ``None`` on Windows.
    """

    if sys.platform == "win32":
        return None
    return DEFAULT_WRAPPER


def build_rcedit_args(exe_path: pathlib.Path, options: Mapping[str, Any]) -> list[str]:
    """Translate an options mapping into rcedit command-line arguments.

    :param exe_path: Executable to modify.
    :param options: rcedit options.
    :returns: Argument list starting with the executable path.
    """

    args: list[str] = [str(exe_path)]

    for name in _PAIR_SETTINGS:
        pairs: Mapping[str, Any] | None = options.get(name)
        if not pairs:
            continue
        for key, value in pairs.items():
            args.extend([f"--set-{name}", str(key), str(value)])

    for name in _SINGLE_SETTINGS:
        value = options.get(name)
        if value:
            args.extend([f"--set-{name}", str(value)])

    for name in _NO_PREFIX_SETTINGS:
        value = options.get(name)
        if value:
            args.extend([f"--{name}", str(value)])

    return args


def update_wine_missing_exception(err: BaseException, *, wrapper: str | None = DEFAULT_WRAPPER) -> BaseException:
    """Rewrite a failure to start the wrapper into an actionable error.

    :param err: Error raised while running rcedit.
    :param wrapper: Wrapper program that was used, if any.
    :returns: :class:`MissingSystemDependencyError` when ``err`` means the
        wrapper is not installed, otherwise ``err`` unchanged.
    """

    if wrapper is None or not isinstance(err, FileNotFoundError):
        return err
    missing: str | None = err.filename if isinstance(err.filename, str) else None
    if missing is None or pathlib.PurePath(missing).name != pathlib.PurePath(wrapper).name:
        return err
    new_err: MissingSystemDependencyError = MissingSystemDependencyError(WINE_MISSING_MESSAGE)
    new_err.__cause__ = err
    return new_err


class RceditInjector:
    """Runs ``rcedit`` against staged executables.

    :ivar rcedit_path: Path or command name of the rcedit executable.
    :ivar wrapper: Program rcedit runs under (``wine``), or ``None`` to run it directly.
        ``"auto"`` picks :func:`default_wrapper` for the host.
    """

    def __init__(
        self,
        *,
        rcedit_path: str | pathlib.Path = DEFAULT_RCEDIT,
        wrapper: str | None = AUTO_WRAPPER,
        logger: logging.Logger | None = None,
    ) -> None:
        self.rcedit_path: str = str(rcedit_path)
        if wrapper == AUTO_WRAPPER:
            wrapper = default_wrapper()
        self.wrapper: str | None = wrapper
        self.logger: logging.Logger = logger if logger is not None else logging.getLogger("electron_packager")

    def command(self, exe_path: pathlib.Path, options: Mapping[str, Any]) -> list[str]:
        cmd: list[str] = [self.rcedit_path, *build_rcedit_args(exe_path, options)]
        if self.wrapper is not None:
            cmd.insert(0, self.wrapper)
        return cmd

    async def run(self, exe_path: pathlib.Path, options: Mapping[str, Any]) -> None:
        """Stamp ``options`` onto ``exe_path``.

        :param exe_path: Staged executable.
        :param options: rcedit options.
        :raises MissingSystemDependencyError: If the wrapper is not installed.
        :raises InjectorError: If rcedit exits with a non-zero status.
        """

        self.logger.debug(f"electron-packager: Running rcedit with the options {json.dumps(options, default=str)}")
        cmd: list[str] = self.command(exe_path, options)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            classified: BaseException = update_wine_missing_exception(e, wrapper=self.wrapper)
            if classified is e:
                raise
            raise classified from e

        stdout, stderr = await proc.communicate()
        if self.logger.isEnabledFor(logging.DEBUG) is True and len(stdout) > 0:
            self.logger.debug(f"electron-packager: rcedit stdout: {stdout.decode(errors='replace').strip()}")
        if proc.returncode != 0:
            stderr_text: str = stderr.decode(errors="replace").strip()
            raise InjectorError(
                f"rcedit failed with exit code {proc.returncode}. {stderr_text}",
                returncode=proc.returncode if proc.returncode is not None else -1,
                stderr=stderr_text,
            )
