import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from helmdiff.tools.helm import ChartSpec, Helm, HelmError, ReleaseNotFoundError

RELEASE_JSON = {
    "name": "app",
    "namespace": "prod",
    "version": 3,
    "info": {"status": "pending-upgrade"},
    "manifest": "---\n# Source: app/templates/svc.yaml\nkind: Service\nmetadata:\n  name: svc\n",
    "hooks": [
        {
            "name": "migrate",
            "kind": "Job",
            "path": "app/templates/migrate.yaml",
            "manifest": "kind: Job\nmetadata:\n  name: migrate\n",
            "events": ["pre-upgrade"],
            "last_run": {"phase": ""},
        }
    ],
}


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test__ChartSpec__to_args() -> None:
    spec = ChartSpec(
        chart="stable/app",
        value_files=[Path("a.yaml"), Path("b.yaml")],
        values=["x=1"],
        string_values=["y=2"],
        devel=True,
    )
    assert spec.to_args() == [
        "stable/app",
        "--version",
        ">0.0.0-0",
        "--values",
        "a.yaml",
        "--values",
        "b.yaml",
        "--set",
        "x=1",
        "--set-string",
        "y=2",
    ]


def test__ChartSpec__explicit_version_wins_over_devel() -> None:
    assert ChartSpec(chart="./chart", version="1.2.3", devel=True).to_args() == ["./chart", "--version", "1.2.3"]


def test__Helm__upgrade_dry_run() -> None:
    with patch("subprocess.run", return_value=completed(json.dumps(RELEASE_JSON))) as run:
        release = Helm(kube_context="staging").upgrade_dry_run(
            "app", "prod", ChartSpec(chart="./chart"), reuse_values=True
        )

    command = run.call_args.args[0]
    assert command == [
        "helm",
        "upgrade",
        "app",
        "./chart",
        "--namespace",
        "prod",
        "--dry-run",
        "--reuse-values",
        "--output",
        "json",
        "--kube-context",
        "staging",
    ]
    assert release.name == "app"
    assert release.namespace == "prod"
    assert release.manifest == RELEASE_JSON["manifest"]
    assert [hook.name for hook in release.hooks] == ["migrate"]
    assert release.hooks[0].events == ["pre-upgrade"]


def test__Helm__install_dry_run() -> None:
    with patch("subprocess.run", return_value=completed(json.dumps(RELEASE_JSON))) as run:
        Helm().install_dry_run("app", "prod", ChartSpec(chart="./chart"))

    assert run.call_args.args[0][:3] == ["helm", "install", "app"]
    assert "--dry-run" in run.call_args.args[0]


def test__Helm__invalid_json() -> None:
    with patch("subprocess.run", return_value=completed("Error: no")):
        with pytest.raises(HelmError, match="valid JSON"):
            Helm().install_dry_run("app", "prod", ChartSpec(chart="./chart"))


def test__Helm__get_manifest_includes_hooks() -> None:
    run = MagicMock(side_effect=[completed("kind: Service\n"), completed("kind: Job\n")])
    with patch("subprocess.run", run):
        manifest = Helm().get_manifest("app", "prod")

    assert manifest == "kind: Service\n---\nkind: Job\n"
    assert run.call_args_list[0].args[0] == ["helm", "get", "manifest", "app", "--namespace", "prod"]
    assert run.call_args_list[1].args[0] == ["helm", "get", "hooks", "app", "--namespace", "prod"]


def test__Helm__get_manifest_not_found() -> None:
    with patch("subprocess.run", return_value=completed(returncode=1, stderr="Error: release: not found")):
        with pytest.raises(ReleaseNotFoundError) as excinfo:
            Helm().get_manifest("app", "prod")

    assert excinfo.value.release == "app"
    assert str(excinfo.value) == "Release 'app' was not found in namespace 'prod' (Error: release: not found)"


def test__Helm__get_manifest_not_found_with_release_name() -> None:
    stderr = 'Error: release: "app" not found'
    with patch("subprocess.run", return_value=completed(returncode=1, stderr=stderr)):
        with pytest.raises(ReleaseNotFoundError):
            Helm().get_manifest("app", "prod")


def test__Helm__missing_kube_context_is_not_a_missing_release() -> None:
    stderr = 'Error: Kubernetes cluster unreachable: context "prod" not found'
    with patch("subprocess.run", return_value=completed(returncode=1, stderr=stderr)):
        with pytest.raises(HelmError) as excinfo:
            Helm(kube_context="prod").get_manifest("app", "ns")

    assert not isinstance(excinfo.value, ReleaseNotFoundError)
    assert 'context "prod" not found' in str(excinfo.value)


def test__Helm__other_errors_propagate() -> None:
    with patch("subprocess.run", return_value=completed(returncode=1, stderr="Error: Kubernetes cluster unreachable")):
        with pytest.raises(HelmError) as excinfo:
            Helm().get_manifest("app", "prod")

    assert not isinstance(excinfo.value, ReleaseNotFoundError)
    assert "cluster unreachable" in str(excinfo.value)


def test__Helm__kubeconfig_is_passed_via_environment() -> None:
    with patch("subprocess.run", return_value=completed("")) as run:
        Helm(kubeconfig=Path("/tmp/kubeconfig")).get_manifest("app", "prod")

    assert run.call_args.kwargs["env"]["KUBECONFIG"] == "/tmp/kubeconfig"
