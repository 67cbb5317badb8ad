import json
import logging
import pathlib
import sys
import textwrap

import pytest


def _write_manifest(directory: pathlib.Path, data: dict) -> pathlib.Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def _install_package(
    root: pathlib.Path,
    name: str,
    version: str,
    *,
    main: str | None = "index.js",
    create_entry: bool = True,
) -> pathlib.Path:
    package_dir = root / "node_modules" / name
    manifest: dict = {"name": name, "version": version}
    if main is not None:
        manifest["main"] = main
    _write_manifest(package_dir, manifest)
    if create_entry is True and main is not None:
        entry = package_dir / main
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text("module.exports = {}\n", encoding="utf-8")
    return package_dir


def _make_runtime(
    runtime_dir: pathlib.Path,
    version: str,
    platform: str,
    arch: str,
) -> pathlib.Path:
    dist = runtime_dir / f"electron-v{version}-{platform}-{arch}"
    (dist / "resources").mkdir(parents=True, exist_ok=True)
    exe = "electron.exe" if platform == "win32" else "electron"
    (dist / exe).write_bytes(b"binary")
    (dist / "resources" / "default_app.asar").write_bytes(b"asar")
    (dist / "LICENSE").write_text("MIT\n", encoding="utf-8")
    return dist


@pytest.fixture
def write_manifest():
    return _write_manifest


@pytest.fixture
def install_package():
    return _install_package


@pytest.fixture
def make_runtime():
    return _make_runtime


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("electron_packager.tests")


@pytest.fixture(autouse=True)
def _reset_package_logger():
    # the CLI installs its own handler and stops propagation
    yield
    package_logger: logging.Logger = logging.getLogger("electron_packager")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_rcedit(tmp_path: pathlib.Path):
    """Return a factory for Python scripts standing in for rcedit.

    The script records its arguments next to the executable it was asked to
    modify, or exits with the given status and stderr.
    """

    def factory(*, exit_code: int = 0, stderr: str = "") -> pathlib.Path:
        script = tmp_path / f"fake_rcedit_{exit_code}.py"
        script.write_text(
            textwrap.dedent(
                f"""
                import json
                import pathlib
                import sys

                if {exit_code} != 0:
                    sys.stderr.write({stderr!r})
                    sys.exit({exit_code})
                exe = pathlib.Path(sys.argv[1])
                exe.with_name(exe.name + ".args.json").write_text(json.dumps(sys.argv[1:]))
                """
            ),
            encoding="utf-8",
        )
        return script

    return factory


@pytest.fixture
def python_wrapper() -> str:
    return sys.executable
