"""
Compare two #ManifestMapping snapshots and render the differences resource by resource.
"""

from dataclasses import dataclass
from difflib import SequenceMatcher
import io
from typing import Collection, Iterator, TextIO

from helmdiff.manifest import ManifestMapping, MappingResult, ResourceIdentity
from helmdiff.records import Classification, DiffLine, DiffRecord, LineTag
from helmdiff.report import ReportWriter


@dataclass(frozen=True)
class DiffOptions:
    """
    Controls how the differences are rendered.
    """

    suppressed_kinds: frozenset[str] = frozenset()
    """ Resource kinds whose content must not be shown in the report. Matched exactly against the kind. """

    context_lines: int = -1
    """ Number of unchanged lines to show around a change. A negative number shows the full content. """

    color: bool = False
    """ Whether to render the report with ANSI colors. """


def diff_lines(before: str, after: str, context_lines: int) -> list[DiffLine]:
    """
    Compute a line diff between two texts. Returns an empty list if the texts have the same lines.

    With a non-negative *context_lines*, only that many unchanged lines are kept around every run of changes and
    each skipped span of unchanged lines is replaced by a single elision line.
    """

    a, b = before.split("\n"), after.split("\n")
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    if all(tag == "equal" for tag, *_ in matcher.get_opcodes()):
        return []

    if context_lines < 0:
        return list(_render_opcodes(matcher.get_opcodes(), a, b))

    result: list[DiffLine] = []
    position = 0
    for group in matcher.get_grouped_opcodes(context_lines):
        if group[0][1] > position:
            result.append(DiffLine(LineTag.ELISION, ""))
        result.extend(_render_opcodes(group, a, b))
        position = group[-1][2]
    if position < len(a):
        result.append(DiffLine(LineTag.ELISION, ""))
    return result


def _render_opcodes(opcodes: list[tuple[str, int, int, int, int]], a: list[str], b: list[str]) -> Iterator[DiffLine]:
    for tag, i1, i2, j1, j2 in opcodes:
        if tag == "equal":
            yield from (DiffLine(LineTag.CONTEXT, line) for line in a[i1:i2])
            continue
        if tag in ("replace", "delete"):
            yield from (DiffLine(LineTag.REMOVED, line) for line in a[i1:i2])
        if tag in ("replace", "insert"):
            yield from (DiffLine(LineTag.ADDED, line) for line in b[j1:j2])


def diff_resource(
    identity: ResourceIdentity,
    before: MappingResult | None,
    after: MappingResult | None,
    options: DiffOptions,
) -> DiffRecord:
    """
    Compare the two versions of a resource. Either side may be `None` if the resource does not exist in it.
    """

    if before is None and after is None:
        raise ValueError(f"resource {identity} is missing on both sides")

    if before is None:
        assert after is not None
        classification = Classification.ADDED
        lines = [DiffLine(LineTag.ADDED, line) for line in after.content.split("\n")]
    elif after is None:
        classification = Classification.REMOVED
        lines = [DiffLine(LineTag.REMOVED, line) for line in before.content.split("\n")]
    else:
        lines = diff_lines(before.content, after.content, options.context_lines)
        classification = Classification.CHANGED if lines else Classification.UNCHANGED

    if classification != Classification.UNCHANGED and identity.kind in options.suppressed_kinds:
        notice = f"Changes suppressed on sensitive content of type {identity.kind}"
        return DiffRecord(identity, classification, [DiffLine(LineTag.ADDED, notice)], suppressed=True)

    return DiffRecord(identity, classification, lines)


def iter_diff_records(
    before: ManifestMapping,
    after: ManifestMapping,
    options: DiffOptions = DiffOptions(),
) -> Iterator[DiffRecord]:
    """
    Yield a #DiffRecord for every resource in either mapping, sorted by kind, namespace and name. Unchanged resources
    are included.
    """

    for identity in sorted(set(before) | set(after)):
        yield diff_resource(identity, before.get(identity), after.get(identity), options)


def classify(before: ManifestMapping, after: ManifestMapping) -> dict[ResourceIdentity, Classification]:
    """
    Classify every resource without rendering anything.
    """

    return {record.identity: record.classification for record in iter_diff_records(before, after)}


def diff_manifests(
    before: ManifestMapping,
    after: ManifestMapping,
    options: DiffOptions,
    output: TextIO,
) -> bool:
    """
    Write the differences between *before* and *after* to *output*.

    Returns:
        `True` if any resource was added, removed or changed.
    """

    writer = ReportWriter(output, color=options.color)
    changed = False
    for record in iter_diff_records(before, after, options):
        if record.has_changes:
            changed = True
            writer.write(record)
    return changed


def compare(
    before: ManifestMapping,
    after: ManifestMapping,
    suppressed_kinds: Collection[str] = (),
    context_lines: int = -1,
) -> tuple[str, bool]:
    """
    Compare two mappings and return the plain-text report along with whether anything changed.
    """

    options = DiffOptions(suppressed_kinds=frozenset(suppressed_kinds), context_lines=context_lines)
    buffer = io.StringIO()
    changed = diff_manifests(before, after, options, buffer)
    return buffer.getvalue(), changed
