"""Infer missing build options from the app's ``package.json`` files.

The application name and the runtime version are required: if neither the
caller nor a manifest provides them, packaging cannot continue. The app
version and the author (used as the Windows company name) are optional and a
missing value simply leaves the option unset.
"""

from dataclasses import dataclass
import logging
import pathlib
import re
from typing import Any, Iterable

from electron_packager.infer import (
    DottedProperty,
    InferenceResult,
    PropertyDescriptor,
    PropertySource,
    infer,
)
from electron_packager.options import BuildOptions
from electron_packager.resolver import PackageReference, ResolutionError, resolve_package
from electron_packager import versions

DOCS_URL: str = "https://github.com/electron/packager/blob/main/docs/api.md"

NAME_KEY: str = "productName"
VERSION_KEY: str = "version"
AUTHOR_KEY: str = "author"
RUNTIME_KEY: str = "dependencies.electron"

# electron-prebuilt-compile's "main" is not loadable, so its version has to be
# read from the declared range instead of the installed package.
PREBUILT_COMPILE: str = "electron-prebuilt-compile"
LEGACY_RANGE: str = "<1.6.5"

NAME_DESCRIPTOR: PropertyDescriptor = PropertyDescriptor.of("productName", "name")
VERSION_DESCRIPTOR: PropertyDescriptor = PropertyDescriptor.of("version")
AUTHOR_DESCRIPTOR: PropertyDescriptor = PropertyDescriptor.of("author")
RUNTIME_DESCRIPTOR: PropertyDescriptor = PropertyDescriptor.of(
    "dependencies.electron",
    "devDependencies.electron",
    "dependencies.electron-nightly",
    "devDependencies.electron-nightly",
    "dependencies.electron-prebuilt-compile",
    "devDependencies.electron-prebuilt-compile",
    "dependencies.electron-prebuilt",
    "devDependencies.electron-prebuilt",
)

REQUIRED_KEYS: frozenset[str] = frozenset({NAME_KEY, RUNTIME_KEY})

_PROPERTY_DOCS: dict[str, tuple[str, str]] = {
    NAME_KEY: ("name", "application name"),
    RUNTIME_KEY: ("electronversion", "Electron version"),
}

_AUTHOR_RE: re.Pattern[str] = re.compile(
    r"^([^<(]+?)?[ \t]*(?:<([^>(]+?)>)?[ \t]*(?:\(([^)]+?)\)|$)"
)


class RequiredMetadataError(RuntimeError):
    """Raised when a required option can be neither found nor inferred.

    The message has one paragraph per missing required property; optional
    properties are only listed in ``missing_props``.

    :ivar missing_props: Keys of all missing properties.
    """

    def __init__(self, missing_props: Iterable[str]) -> None:
        self.missing_props: list[str] = list(missing_props)
        required: list[str] = [p for p in self.missing_props if p in REQUIRED_KEYS]
        super().__init__("\n".join(error_message_for_property(p) for p in required) + "\n")


class ExactVersionRequiredError(RuntimeError):
    """Raised when electron-prebuilt-compile is declared with a legacy range."""


@dataclass(frozen=True, slots=True)
class AuthorInfo:
    """Components of a ``Name <email> (url)`` author string."""

    name: str | None
    email: str | None
    url: str | None


def parse_author(text: str) -> AuthorInfo:
    """Split an npm author string into name, email and URL.

    >>> parse_author("Jane Doe <jane@example.com> (https://example.com)").name
    'Jane Doe'

    :param text: Author string.
    :returns: Parsed components; absent parts are ``None``.
    """

    m: re.Match[str] | None = _AUTHOR_RE.match(text.strip())
    if m is None:
        return AuthorInfo(name=None, email=None, url=None)
    name, email, url = m.group(1), m.group(2), m.group(3)
    return AuthorInfo(
        name=name.strip() if name else None,
        email=email.strip() if email else None,
        url=url.strip() if url else None,
    )


def error_message_for_property(prop: str) -> str:
    """Render the user-facing paragraph for one missing required property.

    :param prop: Descriptor key.
    :returns: Message paragraph ending in a newline.
    """

    anchor, description = _PROPERTY_DOCS.get(prop, ("", "[Unknown Property]"))
    return (
        f"Unable to determine {description}. Please specify an {description}\n\n"
        "For more information, please see\n"
        f"{DOCS_URL}#{anchor}\n"
    )


def is_missing_required_property(props: Iterable[str]) -> bool:
    return any(p in REQUIRED_KEYS for p in props)


def build_descriptors(platforms: Iterable[str], opts: BuildOptions) -> list[PropertyDescriptor]:
    """Decide which properties still need to be inferred.

    :param platforms: Target platforms of this build.
    :param opts: Build options as supplied by the caller.
    :returns: Descriptors for every unset option that can be inferred.
    """

    descriptors: list[PropertyDescriptor] = []
    if not opts.name:
        descriptors.append(NAME_DESCRIPTOR)
    if not opts.app_version:
        descriptors.append(VERSION_DESCRIPTOR)
    if not opts.electron_version:
        descriptors.append(RUNTIME_DESCRIPTOR)
    if "win32" in platforms and not opts.company_name:
        descriptors.append(AUTHOR_DESCRIPTOR)
    return descriptors


async def get_metadata_from_manifest(
    platforms: Iterable[str],
    opts: BuildOptions,
    app_dir: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Fill unset options from the manifests above ``app_dir``.

    :param platforms: Target platforms of this build.
    :param opts: Build options, updated in place.
    :param app_dir: Application directory to start the search from.
    :param logger: Optional logger.
    :raises RequiredMetadataError: If the name or runtime version is missing.
    :raises ExactVersionRequiredError: See :func:`resolve_runtime_version`.
    """

    if logger is None:
        logger = logging.getLogger("electron_packager")

    descriptors: list[PropertyDescriptor] = build_descriptors(list(platforms), opts)
    if len(descriptors) == 0:
        return

    result: InferenceResult = await infer(descriptors, app_dir, logger=logger)
    if result.complete is False:
        missing: list[str] = result.missing_keys
        logger.debug(f"electron-packager: missing properties after inference: {missing}")
        if is_missing_required_property(missing) is True:
            raise RequiredMetadataError(missing)

    await merge_metadata(opts, result, logger=logger)


async def merge_metadata(
    opts: BuildOptions,
    result: InferenceResult,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Apply inferred values to unset options.

    :param opts: Build options, updated in place.
    :param result: Complete or partial inference result.
    :param logger: Optional logger.
    :raises ExactVersionRequiredError: See :func:`resolve_runtime_version`.
    :raises RequiredMetadataError: If the declared runtime package is not
        installed, which leaves the runtime version unresolved.
    """

    if logger is None:
        logger = logging.getLogger("electron_packager")

    name: Any | None = result.values.get(NAME_KEY)
    if name and not opts.name:
        source: PropertySource = result.sources[NAME_KEY]
        logger.debug(
            f"electron-packager: Inferring application name from {source.prop} in {source.manifest_path}"
        )
        opts.name = str(name)

    version: Any | None = result.values.get(VERSION_KEY)
    if version and not opts.app_version:
        logger.debug(
            f"electron-packager: Inferring appVersion from version in {result.sources[VERSION_KEY].manifest_path}"
        )
        opts.app_version = str(version)

    author: Any | None = result.values.get(AUTHOR_KEY)
    if author and not opts.company_name:
        _apply_author(opts, author, result.sources[AUTHOR_KEY], logger)

    if result.values.get(RUNTIME_KEY) and not opts.electron_version:
        try:
            await resolve_runtime_version(opts, result.sources[RUNTIME_KEY], logger=logger)
        except ResolutionError as e:
            logger.debug(f"electron-packager: {e}")
            raise RequiredMetadataError([RUNTIME_KEY]) from e


def _apply_author(
    opts: BuildOptions,
    author: Any,
    source: PropertySource,
    logger: logging.Logger,
) -> None:
    """Set ``win32metadata["CompanyName"]`` from an author value.

    :param opts: Build options, updated in place.
    :param author: Author string or mapping.
    :param source: Provenance of the author value.
    :param logger: Logger.
    """

    if opts.win32metadata is None:
        opts.win32metadata = {}

    logger.debug(
        f"electron-packager: Inferring win32metadata.CompanyName from author in {source.manifest_path}"
    )
    company: str | None = None
    if isinstance(author, str):
        company = parse_author(author).name
    elif isinstance(author, dict) and author.get("name"):
        company = str(author["name"])

    if company is None:
        logger.debug("electron-packager: Cannot infer win32metadata.CompanyName from author, no name found")
        return
    opts.win32metadata["CompanyName"] = company


async def resolve_runtime_version(
    opts: BuildOptions,
    source: PropertySource,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Turn a declared runtime dependency into a concrete ``electron_version``.

    :param opts: Build options, updated in place.
    :param source: Provenance of the runtime dependency.
    :param logger: Optional logger.
    :raises ExactVersionRequiredError: If electron-prebuilt-compile is declared
        with a non-exact range that reaches below 1.6.5.
    :raises ResolutionError: If the declared package is not installed.
    """

    if logger is None:
        logger = logging.getLogger("electron_packager")

    prop = source.prop
    if not isinstance(prop, DottedProperty):
        raise AssertionError(f"Runtime dependency must be a dotted property, got {prop!r}")

    declared: str = str(source.manifest[prop.kind][prop.package])

    if prop.package == PREBUILT_COMPILE:
        try:
            legacy: bool = versions.ranges_intersect(declared, LEGACY_RANGE)
        except versions.InvalidVersionRangeError as e:
            logger.debug(f"electron-packager: skipping legacy range check: {e}")
            legacy = False
        if legacy is True:
            if versions.is_exact_version(declared) is False:
                raise ExactVersionRequiredError(
                    "Using electron-prebuilt-compile with Electron Packager requires "
                    "specifying an exact Electron version"
                )
            logger.debug(
                f"electron-packager: Inferring target Electron version from {prop.package} range in {source.manifest_path}"
            )
            opts.electron_version = declared
            return

    ref: PackageReference = await resolve_package(prop.package, source.manifest_path.parent)
    logger.debug(
        f"electron-packager: Inferring target Electron version from {prop.package} in {source.manifest_path}"
    )
    if ref.version is None:
        raise ResolutionError(
            f"Installed package {prop.package} at {ref.manifest_path} does not declare a version"
        )
    _warn_on_range_mismatch(ref.version, declared, prop.package, logger)
    opts.electron_version = ref.version


def _warn_on_range_mismatch(installed: str, declared: str, package: str, logger: logging.Logger) -> None:
    try:
        ok: bool = versions.satisfies(installed, declared)
    except versions.InvalidVersionRangeError:
        return
    if ok is False:
        logger.warning(
            f"electron-packager: installed {package}@{installed} does not satisfy the declared range {declared!r}"
        )
