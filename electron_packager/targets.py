"""Target resolution helpers.

Turns the user's ``--platform``/``--arch`` requests into the ordered list of
``(platform, arch)`` pairs to package. Platform and arch names follow Node's
``process.platform``/``process.arch`` spelling (``win32``, ``x64``...).
"""

from dataclasses import dataclass
import platform
import sys
from typing import Callable, Iterable


class TargetResolutionError(ValueError):
    """Raised when a platform or arch request cannot be resolved."""


SUPPORTED_PLATFORMS: tuple[str, ...] = ("linux", "win32")
SUPPORTED_ARCHS: tuple[str, ...] = ("ia32", "x64", "armv7l", "arm64")

_UNSUPPORTED_PAIRS: frozenset[tuple[str, str]] = frozenset({("win32", "armv7l")})


@dataclass(frozen=True, slots=True)
class Target:
    """One packaging target.

    :ivar platform: Platform name (e.g. ``win32``).
    :ivar arch: Architecture name (e.g. ``x64``).
    """

    platform: str
    arch: str

    def __str__(self) -> str:
        return f"{self.platform}-{self.arch}"


def resolve_targets(
    *,
    platforms: Iterable[str] | None,
    archs: Iterable[str] | None,
) -> list[Target]:
    """Resolve platform/arch requests into targets.

    ``None`` selects the host value; ``all`` selects every supported value.
    Combinations that no runtime distribution exists for are dropped.

    :param platforms: Requested platforms.
    :param archs: Requested architectures.
    :returns: Targets in request order.
    :raises TargetResolutionError: If a name is unknown or nothing remains.
    """

    platform_list: list[str] = _expand(
        values=platforms,
        supported=SUPPORTED_PLATFORMS,
        host=host_platform,
        what="platform",
    )
    arch_list: list[str] = _expand(
        values=archs,
        supported=SUPPORTED_ARCHS,
        host=host_arch,
        what="arch",
    )

    targets: list[Target] = []
    for p in platform_list:
        for a in arch_list:
            if (p, a) in _UNSUPPORTED_PAIRS:
                continue
            targets.append(Target(platform=p, arch=a))

    if len(targets) == 0:
        raise TargetResolutionError(
            f"No supported target for platforms={platform_list} archs={arch_list}."
        )
    return targets


def _expand(
    *,
    values: Iterable[str] | None,
    supported: tuple[str, ...],
    host: Callable[[], str],
    what: str,
) -> list[str]:
    """Normalise one dimension of the target matrix.

    :param values: Requested names; items may be comma-separated lists.
    :param supported: Accepted names.
    :param host: Callable returning the host value.
    :param what: Dimension name for error messages.
    :returns: De-duplicated names in request order.
    :raises TargetResolutionError: If a name is not supported.
    """

    if values is None:
        return [host()]

    names: list[str] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part == "":
                continue
            if part == "all":
                names.extend(supported)
                continue
            if part not in supported:
                raise TargetResolutionError(
                    f"Unsupported {what} {part!r}; expected one of {', '.join(supported)} or 'all'."
                )
            names.append(part)

    if len(names) == 0:
        return [host()]
    return list(dict.fromkeys(names))


def host_platform() -> str:
    """Map the running interpreter's platform to a target platform name.

    :returns: Platform name.
    :raises TargetResolutionError: If the host platform is not supported.
    """

    if sys.platform == "win32":
        return "win32"
    if sys.platform.startswith("linux") is True:
        return "linux"
    raise TargetResolutionError(
        f"Host platform {sys.platform!r} is not a supported target; pass --platform explicitly."
    )


def host_arch() -> str:
    """Map the host machine type to a target arch name.

    :returns: Arch name.
    :raises TargetResolutionError: If the machine type is not recognized.
    """

    arch_map: dict[str, str] = {
        "x86_64": "x64",
        "amd64": "x64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armv7l",
        "armv7": "armv7l",
        "i386": "ia32",
        "i686": "ia32",
        "x86": "ia32",
    }
    machine: str = platform.machine().lower()
    arch: str | None = arch_map.get(machine)
    if arch is None:
        raise TargetResolutionError(
            f"Unrecognized host machine {platform.machine()!r}; pass --arch explicitly."
        )
    return arch
