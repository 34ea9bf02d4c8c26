from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from helmdiff.tools.fs import find_config_file


@dataclass
class DiffDefaults:
    """
    Defaults for `helm-diff` that are stored in a `helm-diff.yaml` file. Options given on the command-line take
    precedence.
    """

    namespace: str | None = None
    """
    The namespace to assume the release is installed into. If not set, the namespace of the current kubeconfig
    context is used, falling back to `default`.
    """

    suppress: list[str] = field(default_factory=list)
    """
    Resource kinds whose content is never shown in the diff.
    """

    suppress_secrets: bool = False
    """
    Shorthand for adding `Secret` to #suppress.
    """

    context: int = -1
    """
    Number of lines of context to show around changes. A negative number shows the full resource.
    """

    color: bool | None = None
    """
    Whether to colorize the output. If not set, color is used when writing to a terminal.
    """

    def suppressed_kinds(self, extra: list[str] | None = None) -> frozenset[str]:
        kinds = set(self.suppress) | set(extra or ())
        if self.suppress_secrets:
            kinds.add("Secret")
        return frozenset(kinds)


@dataclass
class DiffConfig:
    """
    Wrapper for the configuration file.
    """

    FILENAME = "helm-diff.yaml"

    file: Path | None
    defaults: DiffDefaults

    @staticmethod
    def load(file: Path | None = None, /) -> "DiffConfig":
        """
        Load the configuration from the given file, or from the nearest `helm-diff.yaml`. If there is no such file,
        the built-in defaults are used.
        """

        from databind.json import load as deser
        from yaml import safe_load

        if file is None:
            file = find_config_file(DiffConfig.FILENAME, required=False)
        if file is None:
            return DiffConfig(None, DiffDefaults())

        logger.debug("Loading configuration from '{}'", file)
        defaults = deser(safe_load(file.read_text()) or {}, DiffDefaults, filename=str(file))
        return DiffConfig(file, defaults)
