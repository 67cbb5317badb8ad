"""Windows packaging variant.

Besides renaming ``electron.exe``, the Windows pipeline stamps version
information, the product name and the icon onto the executable with
:class:`~electron_packager.rcedit.RceditInjector`.
"""

import pathlib
from typing import Any

from electron_packager import pipeline
from electron_packager.pipeline import StagingPlan
from electron_packager.rcedit import RceditInjector
from electron_packager.staging import normalize_icon_extension, sanitize_app_name

MANIFEST_PROPERTIES: tuple[str, ...] = ("application-manifest", "requested-execution-level")


class WindowsApp:
    """Packages one Windows target.

    :ivar plan: Staging plan.
    :ivar injector: Runs rcedit on the staged executable.
    """

    def __init__(self, plan: StagingPlan, *, injector: RceditInjector | None = None) -> None:
        self.plan: StagingPlan = plan
        self.injector: RceditInjector = injector if injector is not None else RceditInjector(logger=plan.logger)

    @property
    def original_electron_name(self) -> str:
        return "electron.exe"

    @property
    def new_electron_name(self) -> str:
        return f"{sanitize_app_name(self.plan.executable_name)}.exe"

    @property
    def electron_binary_path(self) -> pathlib.Path:
        return self.plan.staging_path / self.new_electron_name

    def generate_rcedit_options_sans_icon(self) -> dict[str, Any]:
        """Build rcedit options from the build options, without the icon.

        Defaults derived from the app name come first; ``win32metadata`` entries
        override them.

        :returns: rcedit options mapping.
        """

        opts = self.plan.opts
        win32metadata: dict[str, str] = {
            "FileDescription": opts.name or "",
            "InternalName": opts.name or "",
            "OriginalFilename": self.new_electron_name,
            "ProductName": opts.name or "",
            **(opts.win32metadata or {}),
        }

        version_string: dict[str, str] = {
            k: v for k, v in win32metadata.items() if k not in MANIFEST_PROPERTIES
        }
        rc_opts: dict[str, Any] = {"version-string": version_string}

        if opts.app_version:
            rc_opts["product-version"] = opts.app_version
            rc_opts["file-version"] = opts.app_version

        if opts.build_version:
            rc_opts["file-version"] = opts.build_version

        if opts.app_copyright:
            version_string["LegalCopyright"] = opts.app_copyright

        for manifest_property in MANIFEST_PROPERTIES:
            if win32metadata.get(manifest_property):
                rc_opts[manifest_property] = win32metadata[manifest_property]

        return rc_opts

    def get_icon_path(self) -> pathlib.Path | None:
        if self.plan.opts.icon is None:
            return None
        return normalize_icon_extension(
            icon=self.plan.opts.icon,
            target_ext=".ico",
            logger=self.plan.logger,
        )

    def needs_rcedit(self) -> bool:
        opts = self.plan.opts
        return bool(
            opts.icon
            or opts.win32metadata is not None
            or opts.app_copyright
            or opts.app_version
            or opts.build_version
        )

    async def run_rcedit(self) -> None:
        """Stamp metadata onto the renamed executable, if any was requested.

        :raises MissingSystemDependencyError: If ``wine`` is needed but missing.
        :raises InjectorError: If rcedit fails.
        """

        if self.needs_rcedit() is False:
            return

        rc_opts: dict[str, Any] = self.generate_rcedit_options_sans_icon()
        icon: pathlib.Path | None = self.get_icon_path()
        if icon is not None:
            rc_opts["icon"] = str(icon)

        await self.injector.run(self.electron_binary_path, rc_opts)

    async def initialize(self) -> None:
        await pipeline.initialize(self.plan)

    async def rename_electron(self) -> None:
        await pipeline.rename_executable(
            self.plan,
            original=self.original_electron_name,
            renamed=self.new_electron_name,
        )

    async def copy_extra_resources(self) -> None:
        await pipeline.copy_extra_resources(self.plan)

    async def platform_step(self) -> None:
        await self.run_rcedit()

    async def move(self) -> pathlib.Path:
        return await pipeline.move(self.plan)
