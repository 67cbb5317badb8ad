"""Top-level packaging entry point."""

import asyncio
import logging
import pathlib
import shutil
import time

from electron_packager.linux import LinuxApp
from electron_packager.metadata import get_metadata_from_manifest
from electron_packager.options import BuildOptions
from electron_packager.pipeline import PlatformApp, StagingPlan, run_pipeline
from electron_packager.rcedit import RceditInjector
from electron_packager.staging import BuildError
from electron_packager.targets import Target, resolve_targets
from electron_packager.win32 import WindowsApp


def create_app(
    *,
    opts: BuildOptions,
    target: Target,
    logger: logging.Logger,
    injector: RceditInjector | None = None,
) -> PlatformApp:
    """Construct the platform variant for a target.

    :param opts: Build options.
    :param target: Packaging target.
    :param logger: Logger.
    :param injector: rcedit runner for Windows targets.
    :returns: Platform variant.
    :raises BuildError: If the platform has no variant.
    """

    plan: StagingPlan = StagingPlan.create(opts=opts, target=target, logger=logger)
    if target.platform == "win32":
        return WindowsApp(plan, injector=injector)
    if target.platform == "linux":
        return LinuxApp(plan)
    raise BuildError(f"Unsupported platform: {target.platform}")


async def package(
    opts: BuildOptions,
    *,
    logger: logging.Logger | None = None,
    injector: RceditInjector | None = None,
) -> list[pathlib.Path]:
    """Package an app for every requested target.

    Metadata inference runs once; afterwards each target gets its own pipeline
    and the pipelines run concurrently.

    :param opts: Build options; unset metadata is inferred in place.
    :param logger: Optional logger for progress output.
    :param injector: Optional rcedit runner for Windows targets.
    :returns: Output paths of the targets that were packaged.
    :raises RequiredMetadataError: If the app name or runtime version is unknown.
    :raises BuildError: If staging fails.
    """

    if logger is None:
        logger = logging.getLogger("electron_packager")

    t0: float = time.perf_counter()
    targets: list[Target] = resolve_targets(platforms=opts.platforms, archs=opts.archs)
    logger.info(f"electron-packager: targets={', '.join(str(t) for t in targets)}")

    await get_metadata_from_manifest([t.platform for t in targets], opts, opts.dir, logger=logger)
    if not opts.executable_name:
        opts.executable_name = opts.name
    logger.info(
        f"electron-packager: name={opts.name} version={opts.app_version} electron={opts.electron_version}"
    )

    apps: list[PlatformApp] = []
    for target in targets:
        app: PlatformApp = create_app(opts=opts, target=target, logger=logger, injector=injector)
        final_path: pathlib.Path = app.plan.final_path
        if final_path.exists() is True:
            if opts.overwrite is False:
                logger.warning(
                    f"electron-packager: Skipping {target.platform} {target.arch} "
                    "(output dir already exists, use --overwrite to force)"
                )
                continue
            logger.info(f"electron-packager: Removing existing output {final_path}")
            await asyncio.to_thread(shutil.rmtree, final_path)
        apps.append(app)

    outcomes = await asyncio.gather(*(run_pipeline(app) for app in apps), return_exceptions=True)

    paths: list[pathlib.Path] = []
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
        paths.append(outcome)

    t1: float = time.perf_counter()
    logger.info(f"electron-packager: done in {t1 - t0:.2f}s")
    return paths
