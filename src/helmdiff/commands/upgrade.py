import sys
from pathlib import Path

from loguru import logger
from typer import Argument, Exit, Option

from helmdiff.config import DiffConfig
from helmdiff.diff import DiffOptions, diff_manifests
from helmdiff.manifest import ManifestMapping, parse, parse_release
from helmdiff.tools.helm import ChartSpec, Helm, HelmError, ReleaseNotFoundError
from helmdiff.tools.kubeconfig import get_context_namespace

from . import app

EXIT_CODE_CHANGES = 2


@app.command()
def upgrade(
    release: str = Argument(..., help="The name of the release to diff."),
    chart: str = Argument(..., help="The chart to upgrade the release to (a path, URL or `repo/name` reference)."),
    version: str = Option(
        None,
        "--version",
        help="Specify the exact chart version to use. If this is not specified, the latest version is used.",
    ),
    devel: bool = Option(
        False,
        help="Use development versions, too. Equivalent to version '>0.0.0-0'. If --version is set, this is ignored.",
    ),
    values: list[Path] = Option([], "--values", "-f", help="Specify values in a YAML file (can specify multiple)."),
    set_values: list[str] = Option(
        [],
        "--set",
        help="Set values on the command line (can specify multiple or separate values with commas).",
    ),
    set_string_values: list[str] = Option(
        [],
        "--set-string",
        help="Set STRING values on the command line (can specify multiple or separate values with commas).",
    ),
    reuse_values: bool = Option(False, help="Reuse the last release's values and merge in any new values."),
    reset_values: bool = Option(
        False, help="Reset the values to the ones built into the chart and merge in any new values."
    ),
    allow_unreleased: bool = Option(False, help="Enable diffing of releases that are not yet deployed via Helm."),
    suppress: list[str] = Option([], "--suppress", help="Resource kinds whose content is hidden in the diff output."),
    suppress_secrets: bool = Option(False, "--suppress-secrets", "-q", help="Suppress secrets in the output."),
    context: int = Option(
        None, "--context", "-C", help="Output NUM lines of context around changes. -1 shows the full content."
    ),
    namespace: str = Option(
        None,
        help="The namespace to assume the release to be installed into. Defaults to the namespace of the current "
        "kubeconfig context.",
    ),
    kube_context: str = Option(None, help="The kubeconfig context to use."),
    kubeconfig: Path = Option(None, help="Path to the kubeconfig file. Defaults to $KUBECONFIG or ~/.kube/config."),
    detailed_exitcode: bool = Option(
        False, help=f"Return a non-zero exit code ({EXIT_CODE_CHANGES}) when there are changes."
    ),
    color: bool = Option(None, "--color/--no-color", help="Colorize the output. Defaults to color on terminals."),
) -> None:
    """
    Show a diff explaining what a `helm upgrade` would change.

    This fetches the currently deployed version of a release and compares it to a chart plus values. No changes are
    made to the cluster.
    """

    config = DiffConfig.load()
    defaults = config.defaults

    namespace = namespace or defaults.namespace or get_context_namespace(kube_context, kubeconfig) or "default"
    options = DiffOptions(
        suppressed_kinds=defaults.suppressed_kinds(suppress + (["Secret"] if suppress_secrets else [])),
        context_lines=context if context is not None else defaults.context,
        color=_pick(color, defaults.color, sys.stdout.isatty()),
    )
    spec = ChartSpec(
        chart=chart,
        version=version,
        devel=devel,
        value_files=values,
        values=set_values,
        string_values=set_string_values,
    )

    helm = Helm(kube_context=kube_context, kubeconfig=kubeconfig)
    try:
        current, candidate = _render(helm, release, namespace, spec, allow_unreleased, reuse_values, reset_values)
    except ReleaseNotFoundError as exc:
        logger.error("{}. Pass --allow-unreleased to diff against an empty release.", exc)
        raise Exit(1)
    except HelmError as exc:
        logger.error("{}", exc)
        raise Exit(1)

    logger.debug("Comparing {} current against {} candidate resource(s)", len(current), len(candidate))
    if diff_manifests(current, candidate, options, sys.stdout) and detailed_exitcode:
        logger.info(
            "Identified at least one change, exiting with code {} (--detailed-exitcode is enabled)", EXIT_CODE_CHANGES
        )
        raise Exit(EXIT_CODE_CHANGES)


def _render(
    helm: Helm,
    release: str,
    namespace: str,
    spec: ChartSpec,
    allow_unreleased: bool,
    reuse_values: bool,
    reset_values: bool,
) -> tuple[ManifestMapping, ManifestMapping]:
    """
    Obtain the current and the candidate manifests of the release.
    """

    logger.info("Fetching release '{}' from namespace '{}'", release, namespace)
    try:
        current = parse(helm.get_manifest(release, namespace), namespace)
    except ReleaseNotFoundError:
        if not allow_unreleased:
            raise
        logger.warning("Release '{}' was not present in Helm. The diff will show its entire contents as new.", release)
        candidate = helm.install_dry_run(release, namespace, spec)
        return parse("", namespace), parse_release(candidate)

    logger.info("Rendering upgrade of '{}' to chart '{}'", release, spec.chart)
    candidate = helm.upgrade_dry_run(release, namespace, spec, reuse_values=reuse_values, reset_values=reset_values)
    return current, parse_release(candidate)


def _pick(*values: bool | None) -> bool:
    return next(value for value in values if value is not None)
