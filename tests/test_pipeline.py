import asyncio
import json
import logging

import pytest

from electron_packager.linux import LinuxApp
from electron_packager.options import BuildOptions
from electron_packager.packager import create_app, package
from electron_packager.pipeline import StagingPlan, initialize
from electron_packager.rcedit import InjectorError, RceditInjector
from electron_packager.staging import BuildError
from electron_packager.targets import Target
from electron_packager.win32 import WindowsApp

ELECTRON_VERSION = "20.1.0"


@pytest.fixture
def app_dir(tmp_path, write_manifest, install_package):
    app = tmp_path / "app"
    write_manifest(
        app,
        {
            "name": "my-app",
            "productName": "My App",
            "version": "1.2.3",
            "author": "Jane Doe <jane@example.com>",
            "main": "main.js",
            "devDependencies": {"electron": "^20.0.0"},
        },
    )
    (app / "main.js").write_text("require('electron')\n", encoding="utf-8")
    install_package(app, "electron", ELECTRON_VERSION)
    return app


def _opts(tmp_path, app_dir, **kwargs) -> BuildOptions:
    defaults = dict(
        dir=app_dir,
        platforms=("linux",),
        archs=("x64",),
        out=tmp_path / "out",
        runtime_dir=tmp_path / "runtime",
        tmpdir=tmp_path / "tmp",
    )
    defaults.update(kwargs)
    return BuildOptions(**defaults)


def test_package_linux(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    opts = _opts(tmp_path, app_dir)

    paths = asyncio.run(package(opts, logger=logger))

    final = tmp_path / "out" / "My App-linux-x64"
    assert paths == [final]
    assert (final / "My App").is_file()
    assert not (final / "electron").exists()
    assert (final / "LICENSE").is_file()
    assert not (final / "resources" / "default_app.asar").exists()
    assert json.loads((final / "resources" / "app" / "package.json").read_text(encoding="utf-8"))["name"] == "my-app"
    assert (final / "resources" / "app" / "main.js").is_file()
    assert not (tmp_path / "tmp" / "electron-packager" / "linux-x64" / "My App-linux-x64").exists()
    assert opts.executable_name == "My App"


def test_package_windows_stamps_executable(tmp_path, app_dir, make_runtime, logger, fake_rcedit, python_wrapper):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "win32", "x64")
    opts = _opts(tmp_path, app_dir, platforms=("win32",), app_copyright="(c) Jane")
    injector = RceditInjector(rcedit_path=fake_rcedit(), wrapper=python_wrapper, logger=logger)

    paths = asyncio.run(package(opts, logger=logger, injector=injector))

    final = tmp_path / "out" / "My App-win32-x64"
    assert paths == [final]
    assert (final / "My App.exe").is_file()
    recorded = json.loads((final / "My App.exe.args.json").read_text(encoding="utf-8"))
    assert recorded[0].endswith("My App.exe")
    company = recorded.index("CompanyName")
    assert recorded[company - 1 : company + 2] == ["--set-version-string", "CompanyName", "Jane Doe"]
    copyright_ = recorded.index("LegalCopyright")
    assert recorded[copyright_ + 1] == "(c) Jane"
    assert recorded[recorded.index("--set-file-version") + 1] == "1.2.3"


def test_package_multiple_targets(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "arm64")
    opts = _opts(tmp_path, app_dir, archs=("x64", "arm64"))

    paths = asyncio.run(package(opts, logger=logger))

    assert sorted(p.name for p in paths) == ["My App-linux-arm64", "My App-linux-x64"]


def test_extra_resources_are_copied(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    extra_file = tmp_path / "license.txt"
    extra_file.write_text("terms", encoding="utf-8")
    extra_dir = tmp_path / "assets"
    (extra_dir / "img").mkdir(parents=True)
    (extra_dir / "img" / "logo.png").write_bytes(b"png")
    opts = _opts(tmp_path, app_dir, extra_resources=(extra_file, extra_dir))

    asyncio.run(package(opts, logger=logger))

    resources = tmp_path / "out" / "My App-linux-x64" / "resources"
    assert (resources / "license.txt").read_text(encoding="utf-8") == "terms"
    assert (resources / "assets" / "img" / "logo.png").is_file()


def test_existing_output_is_skipped(tmp_path, app_dir, make_runtime, logger, caplog):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    final = tmp_path / "out" / "My App-linux-x64"
    final.mkdir(parents=True)
    (final / "marker").write_text("keep", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        paths = asyncio.run(package(_opts(tmp_path, app_dir), logger=logger))

    assert paths == []
    assert (final / "marker").is_file()
    assert "use --overwrite to force" in caplog.text


def test_existing_output_is_overwritten(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    final = tmp_path / "out" / "My App-linux-x64"
    final.mkdir(parents=True)
    (final / "marker").write_text("stale", encoding="utf-8")

    paths = asyncio.run(package(_opts(tmp_path, app_dir, overwrite=True), logger=logger))

    assert paths == [final]
    assert not (final / "marker").exists()
    assert (final / "My App").is_file()


def test_output_inside_app_dir_is_not_restaged(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    opts = _opts(tmp_path, app_dir, out=app_dir / "dist", overwrite=True)

    asyncio.run(package(opts, logger=logger))
    asyncio.run(package(opts, logger=logger))

    assert not (app_dir / "dist" / "My App-linux-x64" / "resources" / "app" / "dist").exists()


def test_missing_runtime_distribution(tmp_path, app_dir, logger):
    (tmp_path / "runtime").mkdir()

    with pytest.raises(BuildError, match="Runtime distribution not found"):
        asyncio.run(package(_opts(tmp_path, app_dir), logger=logger))

    assert not (tmp_path / "out" / "My App-linux-x64").exists()


def test_failing_rcedit_aborts_before_move(tmp_path, app_dir, make_runtime, logger, fake_rcedit, python_wrapper):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "win32", "x64")
    opts = _opts(tmp_path, app_dir, platforms=("win32",))
    injector = RceditInjector(
        rcedit_path=fake_rcedit(exit_code=1, stderr="Fatal error: Unable to commit changes"),
        wrapper=python_wrapper,
        logger=logger,
    )

    with pytest.raises(InjectorError, match="Unable to commit changes"):
        asyncio.run(package(opts, logger=logger, injector=injector))

    assert not (tmp_path / "out" / "My App-win32-x64").exists()


def test_initialize_resets_staging(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", "1.0.0", "linux", "x64")
    opts = _opts(tmp_path, app_dir, name="App", electron_version="1.0.0")
    plan = StagingPlan.create(opts=opts, target=Target("linux", "x64"), logger=logger)
    plan.staging_path.mkdir(parents=True)
    (plan.staging_path / "stale.txt").write_text("old", encoding="utf-8")

    asyncio.run(initialize(plan))

    assert not (plan.staging_path / "stale.txt").exists()
    assert (plan.staging_path / "electron").is_file()
    assert (plan.resources_dir / "app" / "main.js").is_file()


def test_create_app_picks_variant(tmp_path, logger):
    opts = BuildOptions(dir=tmp_path, name="App")

    assert isinstance(create_app(opts=opts, target=Target("linux", "x64"), logger=logger), LinuxApp)
    assert isinstance(create_app(opts=opts, target=Target("win32", "ia32"), logger=logger), WindowsApp)


def test_plan_requires_name(tmp_path, logger):
    with pytest.raises(BuildError):
        StagingPlan.create(opts=BuildOptions(dir=tmp_path), target=Target("linux", "x64"), logger=logger)


def test_staging_root_inside_app_dir_is_not_copied(tmp_path, app_dir, make_runtime, logger):
    make_runtime(tmp_path / "runtime", ELECTRON_VERSION, "linux", "x64")
    opts = _opts(tmp_path, app_dir, tmpdir=app_dir / ".stage")

    paths = asyncio.run(package(opts, logger=logger))

    final = tmp_path / "out" / "My App-linux-x64"
    assert paths == [final]
    assert (final / "resources" / "app" / "main.js").is_file()
    assert not (final / "resources" / "app" / ".stage").exists()
