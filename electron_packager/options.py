"""Build options shared by inference and the platform pipelines."""

from dataclasses import dataclass, field
import pathlib


@dataclass(slots=True)
class BuildOptions:
    """Mutable build configuration.

    Fields left as ``None`` may be filled in by metadata inference; a value that
    is already set is never replaced.

    :ivar dir: Application source directory (holds ``package.json``).
    :ivar name: Application name.
    :ivar executable_name: Executable base name; defaults to ``name``.
    :ivar app_version: Application version.
    :ivar build_version: File-level build version (Windows).
    :ivar electron_version: Runtime version to package.
    :ivar app_copyright: Legal copyright string.
    :ivar icon: Icon path; the extension is normalised per platform.
    :ivar win32metadata: Windows version-string fields and manifest flags.
    :ivar platforms: Requested platforms (``None`` means the host platform).
    :ivar archs: Requested architectures (``None`` means the host arch).
    :ivar out: Output root directory (defaults to the working directory).
    :ivar overwrite: Replace existing outputs instead of skipping them.
    :ivar extra_resources: Files/directories copied into ``resources/``.
    :ivar runtime_dir: Directory of extracted runtime distributions.
    :ivar tmpdir: Staging root (defaults to the system temp directory).
    """

    dir: pathlib.Path
    name: str | None = None
    executable_name: str | None = None
    app_version: str | None = None
    build_version: str | None = None
    electron_version: str | None = None
    app_copyright: str | None = None
    icon: pathlib.Path | None = None
    win32metadata: dict[str, str] | None = None
    platforms: tuple[str, ...] | None = None
    archs: tuple[str, ...] | None = None
    out: pathlib.Path | None = None
    overwrite: bool = False
    extra_resources: tuple[pathlib.Path, ...] = field(default_factory=tuple)
    runtime_dir: pathlib.Path | None = None
    tmpdir: pathlib.Path | None = None

    @property
    def company_name(self) -> str | None:
        if self.win32metadata is None:
            return None
        return self.win32metadata.get("CompanyName")
