"""
The Helm release document, as returned by `helm install|upgrade --dry-run --output json`.
"""

from dataclasses import dataclass, field
from typing import Any

from databind.core import ExtraKeys


@ExtraKeys()
@dataclass
class Hook:
    """
    A Helm hook. Hooks are not part of the release manifest, but they are rendered from the chart all the same.
    """

    name: str
    kind: str = ""
    path: str = ""
    manifest: str = ""
    events: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        """ A provenance label for the resources rendered by this hook. """

        source = self.path or self.name
        if self.events:
            return f"{source} (hook: {', '.join(self.events)})"
        return f"{source} (hook)"


@ExtraKeys()
@dataclass
class Release:
    """
    The parts of a Helm release that matter for computing a diff. Any other keys in Helm's output are ignored.
    """

    name: str
    namespace: str = "default"
    manifest: str = ""
    hooks: list[Hook] = field(default_factory=list)

    @staticmethod
    def load(data: dict[str, Any], filename: str | None = None) -> "Release":
        """
        Deserialize a release from the JSON payload printed by Helm.
        """

        from databind.json import load as deser

        return deser(data, Release, filename=filename)
