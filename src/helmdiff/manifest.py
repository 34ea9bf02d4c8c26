"""
Extract Kubernetes resources from rendered Helm output.

A Helm render is a stream of YAML documents, each usually preceded by a `# Source: <template>` comment. This module
turns such a stream into a #ManifestMapping that is keyed by a #ResourceIdentity, so that two renders can be matched
resource by resource regardless of the order in which the documents appear.
"""

from dataclasses import dataclass
from enum import Enum
import re
from types import MappingProxyType
from typing import Any, Iterator, Mapping, NamedTuple

import yaml
from loguru import logger

from helmdiff.release import Release

DOCUMENT_SEPARATOR = re.compile(r"^---[ \t]*(?:#.*)?$", re.MULTILINE)
SOURCE_COMMENT = re.compile(r"^#\s*Source:\s*(?P<source>.+?)\s*$")

CLUSTER_SCOPED_KINDS = frozenset(
    {
        "APIService",
        "ClusterIssuer",
        "ClusterRole",
        "ClusterRoleBinding",
        "CustomResourceDefinition",
        "IngressClass",
        "MutatingWebhookConfiguration",
        "Namespace",
        "PersistentVolume",
        "PriorityClass",
        "StorageClass",
        "ValidatingWebhookConfiguration",
    }
)
""" Kinds that never carry a namespace, so the ambient namespace is not injected into them. """


class ResourceIdentity(NamedTuple):
    """
    Identifies a resource across two renders. The field order doubles as the report sort order.
    """

    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return "/".join(part for part in self if part)


@dataclass(frozen=True)
class MappingResult:
    """
    A single resource extracted from a render.
    """

    kind: str
    name: str
    namespace: str

    content: str
    """ The normalized YAML text of the resource. """

    source: str | None = None
    """ The template or hook that produced the resource. Informational only. """

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(self.kind, self.namespace, self.name)


ManifestMapping = Mapping[ResourceIdentity, MappingResult]


class DocumentShape(Enum):
    EMPTY = "empty"
    LIST = "list"
    PLAIN = "plain"


@dataclass
class Segment:
    """
    One document of a multi-document YAML stream, together with its `# Source:` annotation (if any).
    """

    index: int
    text: str
    source: str | None

    def describe(self) -> str:
        return f"document #{self.index}" + (f" ({self.source})" if self.source else "")


def normalize_content(text: str) -> str:
    """
    Normalize line endings and whitespace so that formatting differences do not show up as changes.
    """

    lines = [line.rstrip() for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n")]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


def split_documents(raw_text: str) -> Iterator[Segment]:
    """
    Split a multi-document YAML stream into segments. Segments that contain nothing but whitespace and comments are
    still returned; it is up to the caller to skip them.
    """

    for index, chunk in enumerate(DOCUMENT_SEPARATOR.split(raw_text.replace("\r\n", "\n"))):
        source: str | None = None
        body: list[str] = []
        for line in chunk.split("\n"):
            # Only a comment at the head of the document counts as its source annotation.
            at_head = source is None and all(not previous.strip() for previous in body)
            if at_head and (match := SOURCE_COMMENT.match(line.strip())):
                source = match.group("source")
                continue
            body.append(line)
        yield Segment(index, "\n".join(body), source)


def classify_document(document: Any) -> DocumentShape:
    if not isinstance(document, dict) or not document.get("kind"):
        return DocumentShape.EMPTY
    kind = str(document["kind"])
    if kind.endswith("List") and isinstance(document.get("items"), list):
        return DocumentShape.LIST
    return DocumentShape.PLAIN


def parse(raw_text: str | None, ambient_namespace: str) -> ManifestMapping:
    """
    Parse rendered manifests into a mapping of resources.

    Broken documents are skipped with a warning instead of failing the whole parse, and an empty input gives an
    empty mapping (which is what a release that is not installed yet looks like).

    Args:
        raw_text: The concatenated YAML documents, as printed by `helm template` or `helm get manifest`.
        ambient_namespace: The namespace to assume for namespaced resources that do not specify one.
    Returns:
        A read-only mapping from #ResourceIdentity to #MappingResult.
    """

    result: dict[ResourceIdentity, MappingResult] = {}
    _parse_into(result, raw_text or "", ambient_namespace)
    return MappingProxyType(result)


def parse_release(release: Release) -> ManifestMapping:
    """
    Parse the manifest and the hooks of a Helm release into a mapping of resources. Hook resources are matched like
    any other resource; their provenance label names the hook.
    """

    result: dict[ResourceIdentity, MappingResult] = {}
    _parse_into(result, release.manifest, release.namespace)
    for hook in release.hooks:
        _parse_into(result, hook.manifest, release.namespace, default_source=hook.label)
    return MappingProxyType(result)


def _parse_into(
    result: dict[ResourceIdentity, MappingResult],
    raw_text: str,
    ambient_namespace: str,
    default_source: str | None = None,
) -> None:
    for segment in split_documents(raw_text):
        if segment.source is None:
            segment.source = default_source
        for resource in _extract_segment(segment, ambient_namespace):
            if (previous := result.get(resource.identity)) is not None:
                logger.warning(
                    "Resource {} is defined more than once (in {} and {}), keeping the latter.",
                    resource.identity,
                    previous.source or "<unknown>",
                    resource.source or "<unknown>",
                )
            result[resource.identity] = resource


def _extract_segment(segment: Segment, ambient_namespace: str) -> list[MappingResult]:
    if not segment.text.strip():
        return []

    try:
        document = yaml.safe_load(segment.text)
    except yaml.YAMLError as exc:
        logger.warning("Skipping {}, it is not valid YAML: {}", segment.describe(), exc)
        return []

    if document is not None and not isinstance(document, dict):
        logger.warning("Skipping {}, expected a mapping but got {}.", segment.describe(), type(document).__name__)
        return []

    shape = classify_document(document)
    if shape == DocumentShape.EMPTY:
        logger.debug("Skipping {}, it does not describe a resource.", segment.describe())
        return []

    if shape == DocumentShape.LIST:
        return _expand_list(document, segment, ambient_namespace)

    resource = _make_result(document, segment.text, segment, ambient_namespace)
    return [resource] if resource is not None else []


def _expand_list(document: dict[str, Any], segment: Segment, ambient_namespace: str) -> list[MappingResult]:
    """
    Expand the items of a `List` (or `*List`) container into resources. Nested lists are expanded as well.
    """

    results = []
    for item in document["items"]:
        shape = classify_document(item)
        if shape == DocumentShape.LIST:
            results.extend(_expand_list(item, segment, ambient_namespace))
            continue
        if shape != DocumentShape.PLAIN:
            logger.warning("Skipping an item of {}, it is not a resource.", segment.describe())
            continue
        content = yaml.safe_dump(item, sort_keys=False, default_flow_style=False)
        if (resource := _make_result(item, content, segment, ambient_namespace)) is not None:
            results.append(resource)
    return results


def _make_result(
    document: dict[str, Any],
    content: str,
    segment: Segment,
    ambient_namespace: str,
) -> MappingResult | None:
    kind = str(document["kind"])
    metadata = document.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        logger.warning("Skipping {} resource in {}, it has no 'metadata.name'.", kind, segment.describe())
        return None

    namespace = metadata.get("namespace")
    if not namespace:
        namespace = "" if kind in CLUSTER_SCOPED_KINDS else ambient_namespace

    return MappingResult(
        kind=kind,
        name=str(metadata["name"]),
        namespace=str(namespace),
        content=normalize_content(content),
        source=segment.source,
    )
