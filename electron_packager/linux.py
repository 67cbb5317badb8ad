"""Linux packaging variant: rename only, no binary metadata."""

import pathlib

from electron_packager import pipeline
from electron_packager.pipeline import StagingPlan
from electron_packager.staging import sanitize_app_name


class LinuxApp:
    """Packages one Linux target."""

    def __init__(self, plan: StagingPlan) -> None:
        self.plan: StagingPlan = plan

    @property
    def original_electron_name(self) -> str:
        return "electron"

    @property
    def new_electron_name(self) -> str:
        return sanitize_app_name(self.plan.executable_name)

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
        return None

    async def move(self) -> pathlib.Path:
        return await pipeline.move(self.plan)
