"""electron-packager-py.

Packages an Electron app into per-platform bundles, inferring missing metadata
(name, version, company, Electron version) from the app's ``package.json``.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
