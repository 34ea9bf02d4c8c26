from dataclasses import dataclass, field
import json
import os
from pathlib import Path
import re
import shlex
import subprocess

from loguru import logger

from helmdiff.release import Release

RELEASE_NOT_FOUND = re.compile(r"\brelease:\s*(?:\"[^\"]*\"\s+)?not found")
""" Matches Helm's error for a missing release: `release: not found` or `release: "<name>" not found`. """


@dataclass
class HelmError(Exception):
    command: list[str]
    statuscode: int
    stderr: str | None = None

    def __str__(self) -> str:
        command = " ".join(map(shlex.quote, self.command))
        message = f"Helm command `{command}` failed with status code {self.statuscode}"
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


@dataclass
class ReleaseNotFoundError(HelmError):
    release: str = ""
    namespace: str = ""

    def __str__(self) -> str:
        message = f"Release '{self.release}' was not found in namespace '{self.namespace}'"
        if self.stderr:
            message += f" ({self.stderr.strip()})"
        return message


@dataclass
class ChartSpec:
    """
    Describes the chart and values of the candidate release. The chart reference and values are passed to Helm as-is,
    Helm takes care of locating the chart and merging the values.
    """

    chart: str
    version: str | None = None
    devel: bool = False
    value_files: list[Path] = field(default_factory=list)
    values: list[str] = field(default_factory=list)
    string_values: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args = [self.chart]
        if self.version:
            args.extend(["--version", self.version])
        elif self.devel:
            args.extend(["--version", ">0.0.0-0"])
        for file in self.value_files:
            args.extend(["--values", str(file)])
        for value in self.values:
            args.extend(["--set", value])
        for value in self.string_values:
            args.extend(["--set-string", value])
        return args


class Helm:
    """
    Wrapper for interfacing with the `helm` command-line tool.
    """

    def __init__(self, kube_context: str | None = None, kubeconfig: Path | None = None, binary: str = "helm") -> None:
        self.binary = binary
        self.kube_context = kube_context
        self.env: dict[str, str] = {}
        if kubeconfig is not None:
            self.env["KUBECONFIG"] = str(kubeconfig)

    def _run(self, args: list[str]) -> str:
        command = [self.binary, *args]
        if self.kube_context:
            command.extend(["--kube-context", self.kube_context])

        logger.debug("Running Helm: $ {command}", command=" ".join(map(shlex.quote, command)))
        status = subprocess.run(command, env={**os.environ, **self.env}, text=True, capture_output=True)
        if status.returncode != 0:
            raise HelmError(command, status.returncode, status.stderr)
        return status.stdout

    def _run_release(self, args: list[str]) -> Release:
        output = self._run([*args, "--output", "json"])
        try:
            return Release.load(json.loads(output))
        except json.JSONDecodeError as exc:
            raise HelmError([self.binary, *args], 0, f"Helm did not return valid JSON: {exc}") from exc

    def get_manifest(self, release: str, namespace: str) -> str:
        """
        Get the rendered manifest of the deployed release, hooks included.

        Raises:
            ReleaseNotFoundError: If the release does not exist.
        """

        try:
            manifest = self._run(["get", "manifest", release, "--namespace", namespace])
            hooks = self._run(["get", "hooks", release, "--namespace", namespace])
        except HelmError as exc:
            if exc.stderr and RELEASE_NOT_FOUND.search(exc.stderr):
                raise ReleaseNotFoundError(exc.command, exc.statuscode, exc.stderr, release, namespace) from exc
            raise

        return manifest if not hooks.strip() else f"{manifest.rstrip()}\n---\n{hooks}"

    def upgrade_dry_run(
        self,
        release: str,
        namespace: str,
        chart: ChartSpec,
        reuse_values: bool = False,
        reset_values: bool = False,
    ) -> Release:
        """
        Render the release as it would look after `helm upgrade`, without touching the cluster.
        """

        args = ["upgrade", release, *chart.to_args(), "--namespace", namespace, "--dry-run"]
        if reuse_values:
            args.append("--reuse-values")
        if reset_values:
            args.append("--reset-values")
        return self._run_release(args)

    def install_dry_run(self, release: str, namespace: str, chart: ChartSpec) -> Release:
        """
        Render the release as it would look after `helm install`, without touching the cluster.
        """

        return self._run_release(["install", release, *chart.to_args(), "--namespace", namespace, "--dry-run"])
