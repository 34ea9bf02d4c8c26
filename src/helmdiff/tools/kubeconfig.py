from pathlib import Path

from kubernetes.config.config_exception import ConfigException
from kubernetes.config.kube_config import list_kube_config_contexts
from loguru import logger


def get_context_namespace(kube_context: str | None = None, kubeconfig: Path | None = None) -> str | None:
    """
    Return the namespace configured for the given (or the current) kubeconfig context. Returns `None` if there is no
    kubeconfig, the context does not exist or it does not specify a namespace.
    """

    try:
        contexts, current = list_kube_config_contexts(config_file=str(kubeconfig) if kubeconfig else None)
    except ConfigException as exc:
        logger.debug("Could not load the kubeconfig: {}", exc)
        return None

    if kube_context is not None:
        selected = next((context for context in contexts if context["name"] == kube_context), None)
    else:
        selected = current

    if selected is None:
        logger.debug("Kubeconfig context '{}' does not exist", kube_context)
        return None

    return selected.get("context", {}).get("namespace") or None
