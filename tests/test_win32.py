import asyncio
import json
import pathlib

import pytest

from electron_packager.options import BuildOptions
from electron_packager.pipeline import StagingPlan
from electron_packager.rcedit import (
    InjectorError,
    MissingSystemDependencyError,
    RceditInjector,
    build_rcedit_args,
    update_wine_missing_exception,
)
from electron_packager.targets import Target
from electron_packager.win32 import WindowsApp


def _app(tmp_path, logger, **kwargs) -> WindowsApp:
    opts = BuildOptions(dir=tmp_path, name="My App", executable_name="My App", tmpdir=tmp_path / "tmp", **kwargs)
    plan = StagingPlan.create(opts=opts, target=Target("win32", "x64"), logger=logger)
    return WindowsApp(plan, injector=RceditInjector(wrapper=None, logger=logger))


def test_rcedit_options_defaults(tmp_path, logger):
    app = _app(tmp_path, logger)

    assert app.generate_rcedit_options_sans_icon() == {
        "version-string": {
            "FileDescription": "My App",
            "InternalName": "My App",
            "OriginalFilename": "My App.exe",
            "ProductName": "My App",
        }
    }
    assert app.needs_rcedit() is False


def test_rcedit_options_full(tmp_path, logger):
    app = _app(
        tmp_path,
        logger,
        app_version="1.2.3",
        build_version="1.2.3.4",
        app_copyright="(c) Acme",
        win32metadata={
            "CompanyName": "Acme",
            "ProductName": "Custom Product",
            "requested-execution-level": "requireAdministrator",
        },
    )

    options = app.generate_rcedit_options_sans_icon()

    assert options["version-string"] == {
        "FileDescription": "My App",
        "InternalName": "My App",
        "OriginalFilename": "My App.exe",
        "ProductName": "Custom Product",
        "CompanyName": "Acme",
        "LegalCopyright": "(c) Acme",
    }
    assert options["product-version"] == "1.2.3"
    assert options["file-version"] == "1.2.3.4"
    assert options["requested-execution-level"] == "requireAdministrator"
    assert "application-manifest" not in options
    assert app.needs_rcedit() is True


def test_empty_win32metadata_still_needs_rcedit(tmp_path, logger):
    assert _app(tmp_path, logger, win32metadata={}).needs_rcedit() is True


def test_build_rcedit_args(tmp_path):
    exe = tmp_path / "app.exe"

    args = build_rcedit_args(
        exe,
        {
            "version-string": {"CompanyName": "Acme", "ProductName": "App"},
            "file-version": "1.0.0",
            "icon": "icon.ico",
            "application-manifest": "app.manifest",
        },
    )

    assert args == [
        str(exe),
        "--set-version-string",
        "CompanyName",
        "Acme",
        "--set-version-string",
        "ProductName",
        "App",
        "--set-file-version",
        "1.0.0",
        "--set-icon",
        "icon.ico",
        "--application-manifest",
        "app.manifest",
    ]


def test_update_wine_missing_exception():
    missing_wine = FileNotFoundError(2, "No such file or directory", "wine")
    classified = update_wine_missing_exception(missing_wine, wrapper="wine")
    assert isinstance(classified, MissingSystemDependencyError)
    assert 'Could not find "wine" on your system.' in str(classified)
    assert classified.__cause__ is missing_wine

    missing_rcedit = FileNotFoundError(2, "No such file or directory", "rcedit.exe")
    assert update_wine_missing_exception(missing_rcedit, wrapper="wine") is missing_rcedit

    other = PermissionError(13, "Permission denied", "wine")
    assert update_wine_missing_exception(other, wrapper="wine") is other


def test_injector_command_prepends_wrapper():
    injector = RceditInjector(rcedit_path="/opt/rcedit.exe", wrapper="wine64")

    assert injector.command(pathlib.Path("a.exe"), {})[:3] == ["wine64", "/opt/rcedit.exe", "a.exe"]


def test_injector_runs_program(tmp_path, logger, fake_rcedit, python_wrapper):
    exe = tmp_path / "app.exe"
    exe.write_bytes(b"binary")
    injector = RceditInjector(rcedit_path=fake_rcedit(), wrapper=python_wrapper, logger=logger)

    asyncio.run(injector.run(exe, {"version-string": {"ProductName": "App"}, "product-version": "2.0.0"}))

    recorded = json.loads((tmp_path / "app.exe.args.json").read_text(encoding="utf-8"))
    assert recorded == [str(exe), "--set-version-string", "ProductName", "App", "--set-product-version", "2.0.0"]


def test_injector_failure_carries_stderr(tmp_path, logger, fake_rcedit, python_wrapper):
    exe = tmp_path / "app.exe"
    exe.write_bytes(b"binary")
    injector = RceditInjector(
        rcedit_path=fake_rcedit(exit_code=3, stderr="Unable to load file"),
        wrapper=python_wrapper,
        logger=logger,
    )

    with pytest.raises(InjectorError) as excinfo:
        asyncio.run(injector.run(exe, {"file-version": "1.0.0"}))

    assert excinfo.value.returncode == 3
    assert "Unable to load file" in str(excinfo.value)
    assert excinfo.value.stderr == "Unable to load file"


def test_missing_wrapper_is_reported(tmp_path, logger):
    exe = tmp_path / "app.exe"
    exe.write_bytes(b"binary")
    injector = RceditInjector(wrapper="electron-packager-test-missing-wine", logger=logger)

    with pytest.raises(MissingSystemDependencyError):
        asyncio.run(injector.run(exe, {"file-version": "1.0.0"}))


def test_missing_rcedit_without_wrapper_propagates(tmp_path, logger):
    exe = tmp_path / "app.exe"
    exe.write_bytes(b"binary")
    injector = RceditInjector(
        rcedit_path=tmp_path / "no-such-rcedit.exe",
        wrapper=None,
        logger=logger,
    )

    with pytest.raises(FileNotFoundError):
        asyncio.run(injector.run(exe, {"file-version": "1.0.0"}))


def test_run_rcedit_adds_normalized_icon(tmp_path, logger, fake_rcedit, python_wrapper):
    (tmp_path / "icon.ico").write_bytes(b"ico")
    app = _app(tmp_path, logger, icon=tmp_path / "icon.png")
    app.injector = RceditInjector(rcedit_path=fake_rcedit(), wrapper=python_wrapper, logger=logger)
    app.plan.staging_path.mkdir(parents=True)
    app.electron_binary_path.write_bytes(b"binary")

    asyncio.run(app.run_rcedit())

    recorded = json.loads(
        (app.plan.staging_path / "My App.exe.args.json").read_text(encoding="utf-8")
    )
    assert recorded[-2:] == ["--set-icon", str(tmp_path / "icon.ico")]
