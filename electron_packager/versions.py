"""npm-style semantic version helpers.

Ranges are parsed with :class:`semantic_version.NpmSpec`, which understands the
``^``/``~``/x-range/hyphen/``||`` syntax used in ``package.json`` files.
"""

import re

import semantic_version
from semantic_version.base import AllOf, AnyOf, Clause, Range


class InvalidVersionRangeError(ValueError):
    """Raised when a string cannot be parsed as an npm version range."""


_EXACT_VERSION_RE: re.Pattern[str] = re.compile(r"^\d+\.\d+\.\d+")

# Version-looking tokens inside a range expression, including partial and
# x-range forms ("1", "1.2", "1.x", "1.2.*") and an optional prerelease.
_RANGE_TOKEN_RE: re.Pattern[str] = re.compile(
    r"(?<![\d.])(?P<major>\d+)(?:\.(?P<minor>\d+|[xX*]))?(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
)


def parse_range(text: str) -> semantic_version.NpmSpec:
    """Parse an npm version range.

    :param text: Range expression, e.g. ``^1.2.0`` or ``>=1 <2``.
    :returns: Parsed spec.
    :raises InvalidVersionRangeError: If the expression is not a valid range.
    """

    try:
        return semantic_version.NpmSpec(text.strip())
    except ValueError as e:
        raise InvalidVersionRangeError(f"Invalid version range {text!r}: {e}") from e


def is_exact_version(text: str) -> bool:
    """Check whether a declared version starts with a full ``MAJOR.MINOR.PATCH``.

    :param text: Declared version text.
    :returns: ``True`` for exact three-part versions.
    """

    return _EXACT_VERSION_RE.match(text.strip()) is not None


def satisfies(version: str, range_text: str) -> bool:
    """Check whether a concrete version satisfies a range.

    :param version: Concrete version, e.g. ``1.7.0``.
    :param range_text: Range expression.
    :returns: ``True`` if ``version`` is inside ``range_text``.
    :raises InvalidVersionRangeError: If either side cannot be parsed.
    """

    spec: semantic_version.NpmSpec = parse_range(range_text)
    try:
        parsed: semantic_version.Version = semantic_version.Version(version.strip())
    except ValueError as e:
        raise InvalidVersionRangeError(f"Invalid version {version!r}: {e}") from e
    return spec.match(parsed)


def ranges_intersect(left: str, right: str) -> bool:
    """Check whether two ranges share at least one version.

    Ranges are compared as intervals, the way npm's ``semver.intersects``
    does: prerelease exclusion rules do not apply, so ``>1.6.4`` and
    ``<1.6.5`` intersect (at ``1.6.5-0``).

    The lowest version of every interval in either range is a bound written in
    one of the expressions, the first version after an exclusive one (the
    lowest prerelease of the next patch) or ``0.0.0``. Probing those
    candidates against both ranges is therefore enough to decide the
    intersection.

    :param left: First range expression.
    :param right: Second range expression.
    :returns: ``True`` if some version lies in both ranges.
    :raises InvalidVersionRangeError: If either range cannot be parsed.
    """

    left_spec: semantic_version.NpmSpec = parse_range(left)
    right_spec: semantic_version.NpmSpec = parse_range(right)

    candidates: set[semantic_version.Version] = {semantic_version.Version("0.0.0")}
    for text in (left, right):
        for bound in _range_bounds(text):
            candidates.add(bound)
            candidates.add(bound.next_patch())
            candidates.add(bound.next_minor())
            candidates.add(bound.next_major())
            if not bound.prerelease:
                nxt: semantic_version.Version = bound.next_patch()
                candidates.add(
                    semantic_version.Version(major=nxt.major, minor=nxt.minor, patch=nxt.patch, prerelease=("0",))
                )

    for candidate in sorted(candidates):
        if _in_interval(left_spec.clause, candidate) is True and _in_interval(right_spec.clause, candidate) is True:
            return True
    return False


def _in_interval(clause: Clause, version: semantic_version.Version) -> bool:
    """Match a version against a parsed range, ignoring prerelease policies.

    :param clause: Parsed clause tree of an :class:`~semantic_version.NpmSpec`.
    :param version: Candidate version.
    :returns: ``True`` if ``version`` lies inside the range's intervals.
    """

    match clause:
        case AnyOf(clauses=clauses):
            return any(_in_interval(c, version) for c in clauses)
        case AllOf(clauses=clauses):
            return all(_in_interval(c, version) for c in clauses)
        case Range(operator=op, target=target):
            if op == Range.OP_EQ:
                return version == target
            if op == Range.OP_NEQ:
                return version != target
            if op == Range.OP_GT:
                return version > target
            if op == Range.OP_GTE:
                return version >= target
            if op == Range.OP_LT:
                return version < target
            if op == Range.OP_LTE:
                return version <= target
            raise InvalidVersionRangeError(f"Unsupported range operator {op!r}")
    return clause.match(version)


def _range_bounds(text: str) -> list[semantic_version.Version]:
    """Extract the versions written in a range expression.

    Partial and x-range components are filled with zeros.

    :param text: Range expression.
    :returns: Versions in order of appearance.
    """

    bounds: list[semantic_version.Version] = []
    for m in _RANGE_TOKEN_RE.finditer(text):
        parts: list[str] = []
        for group in ("major", "minor", "patch"):
            value: str | None = m.group(group)
            if value is None or value in {"x", "X", "*"}:
                parts.append("0")
            else:
                parts.append(str(int(value)))
        version_text: str = ".".join(parts)
        if m.group("pre") is not None:
            version_text = f"{version_text}-{m.group('pre')}"
        try:
            bounds.append(semantic_version.Version(version_text))
        except ValueError:
            continue
    return bounds
