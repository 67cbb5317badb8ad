"""Per-target packaging pipeline.

Every platform variant exposes the same five steps. :func:`run_pipeline` runs
them strictly in order; the first failure aborts the remaining steps.

1. ``initialize``: reset the staging directory and fill it from the runtime
   distribution and the app sources.
2. ``rename_electron``: give the runtime executable the app's name.
3. ``copy_extra_resources``: copy user-supplied resources into ``resources/``.
4. ``platform_step``: platform-specific work (Windows metadata injection).
5. ``move``: relocate the staging directory to its final output path.
"""

from dataclasses import dataclass
import asyncio
import logging
import pathlib
import shutil
import time
from typing import Protocol

from electron_packager.options import BuildOptions
from electron_packager.staging import (
    BuildError,
    CopyStats,
    compute_stage_excludes,
    copy_app_tree,
    copy_path,
    generate_final_basename,
    generate_final_path,
    staging_root,
)
from electron_packager.targets import Target


class PlatformApp(Protocol):
    """Steps every platform variant provides."""

    plan: "StagingPlan"

    async def initialize(self) -> None: ...

    async def rename_electron(self) -> None: ...

    async def copy_extra_resources(self) -> None: ...

    async def platform_step(self) -> None: ...

    async def move(self) -> pathlib.Path: ...


@dataclass(frozen=True, slots=True)
class StagingPlan:
    """Paths and settings one pipeline works with.

    :ivar opts: Build options (read-only once inference has run).
    :ivar target: Packaging target.
    :ivar staging_path: Directory the bundle is assembled in.
    :ivar final_path: Directory the bundle is moved to.
    :ivar logger: Logger for progress output.
    """

    opts: BuildOptions
    target: Target
    staging_path: pathlib.Path
    final_path: pathlib.Path
    logger: logging.Logger

    @classmethod
    def create(
        cls,
        *,
        opts: BuildOptions,
        target: Target,
        logger: logging.Logger,
    ) -> "StagingPlan":
        """Derive staging and final paths for a target.

        :param opts: Build options; ``name`` must be set.
        :param target: Packaging target.
        :param logger: Logger.
        :returns: The plan.
        :raises BuildError: If the app name is unknown.
        """

        if not opts.name:
            raise BuildError("Cannot stage an app without a name.")
        staging_path: pathlib.Path = (
            staging_root(opts.tmpdir)
            / str(target)
            / generate_final_basename(name=opts.name, target=target)
        )
        return cls(
            opts=opts,
            target=target,
            staging_path=staging_path,
            final_path=generate_final_path(out=opts.out, name=opts.name, target=target),
            logger=logger,
        )

    @property
    def resources_dir(self) -> pathlib.Path:
        return self.staging_path / "resources"

    @property
    def runtime_template(self) -> pathlib.Path:
        """Extracted runtime distribution for this target."""

        if self.opts.runtime_dir is None:
            raise BuildError("No runtime directory configured (--runtime-dir).")
        if not self.opts.electron_version:
            raise BuildError("The Electron version is unknown; cannot pick a runtime distribution.")
        return self.opts.runtime_dir / f"electron-v{self.opts.electron_version}-{self.target}"

    @property
    def executable_name(self) -> str:
        return self.opts.executable_name or self.opts.name or ""


async def initialize(plan: StagingPlan) -> None:
    """Reset the staging directory and fill it with the runtime and app sources.

    :param plan: Staging plan.
    :raises BuildError: If the runtime distribution or app directory is missing.
    """

    await asyncio.to_thread(_initialize_sync, plan)


def _initialize_sync(plan: StagingPlan) -> None:
    template: pathlib.Path = plan.runtime_template
    if template.is_dir() is False:
        raise BuildError(f"Runtime distribution not found: {template}")
    if plan.opts.dir.is_dir() is False:
        raise BuildError(f"App directory does not exist: {plan.opts.dir}")

    plan.logger.debug(
        f"electron-packager: Initializing app in {plan.staging_path} from {template} template"
    )
    if plan.staging_path.exists() is True:
        shutil.rmtree(plan.staging_path)
    plan.staging_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(template, plan.staging_path, symlinks=True)

    app_dest: pathlib.Path = plan.resources_dir / "app"
    excludes: set[str] = compute_stage_excludes(
        app_dir=plan.opts.dir,
        out=plan.opts.out,
        name=plan.opts.name or "",
        tmpdir=plan.opts.tmpdir,
    )
    if plan.logger.isEnabledFor(logging.DEBUG) is True:
        plan.logger.debug(f"electron-packager: staging excludes={sorted(excludes)}")

    t0: float = time.perf_counter()
    stats: CopyStats = copy_app_tree(src=plan.opts.dir, dst=app_dest, exclude_relpaths=excludes)
    t1: float = time.perf_counter()
    plan.logger.info(
        f"electron-packager: {plan.target}: copied {stats.files_copied} app files "
        f"({stats.bytes_copied / (1024 * 1024):.1f} MiB) in {t1 - t0:.2f}s"
    )

    default_app: pathlib.Path = plan.resources_dir / "default_app.asar"
    if default_app.exists() is True:
        default_app.unlink()


async def rename_executable(plan: StagingPlan, *, original: str, renamed: str) -> None:
    """Rename the runtime executable inside the staging directory.

    :param plan: Staging plan.
    :param original: Executable name shipped with the runtime.
    :param renamed: New executable name.
    :raises BuildError: If the runtime executable is missing.
    """

    src: pathlib.Path = plan.staging_path / original
    dst: pathlib.Path = plan.staging_path / renamed
    if src.is_file() is False:
        raise BuildError(f"Runtime executable not found in staging directory: {src}")
    if src == dst:
        return
    plan.logger.debug(f"electron-packager: Renaming {original} to {renamed}")
    await asyncio.to_thread(src.rename, dst)


async def copy_extra_resources(plan: StagingPlan) -> None:
    """Copy ``extra_resources`` into the staged ``resources`` directory.

    :param plan: Staging plan.
    :raises BuildError: If a resource does not exist.
    """

    for resource in plan.opts.extra_resources:
        dest: pathlib.Path = plan.resources_dir / resource.name
        plan.logger.debug(f"electron-packager: Copying extra resource {resource} to {dest}")
        await asyncio.to_thread(copy_path, src=resource, dst=dest)


async def move(plan: StagingPlan) -> pathlib.Path:
    """Move the staging directory to its final location.

    :param plan: Staging plan.
    :returns: Final output path.
    :raises BuildError: If the final path is already taken.
    """

    if plan.final_path.exists() is True:
        raise BuildError(f"Output directory already exists: {plan.final_path}")
    plan.logger.debug(f"electron-packager: Moving {plan.staging_path} to {plan.final_path}")
    plan.final_path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(shutil.move, str(plan.staging_path), str(plan.final_path))
    return plan.final_path


async def run_pipeline(app: PlatformApp) -> pathlib.Path:
    """Run a platform variant's steps in order.

    :param app: Platform variant.
    :returns: Final output path.
    """

    logger: logging.Logger = app.plan.logger
    t0: float = time.perf_counter()
    logger.info(f"electron-packager: packaging {app.plan.opts.name} for {app.plan.target}")
    await app.initialize()
    await app.rename_electron()
    await app.copy_extra_resources()
    await app.platform_step()
    final_path: pathlib.Path = await app.move()
    t1: float = time.perf_counter()
    logger.info(f"electron-packager: wrote {final_path} in {t1 - t0:.2f}s")
    return final_path
