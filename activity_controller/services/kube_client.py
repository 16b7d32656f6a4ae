"""
Kube Client
===========
Builds the Kubernetes API handles the controller needs.

Clients are constructed once at startup and passed explicitly to the
components that use them; nothing here is cached in module globals.
"""
import logging
import os
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config

logger = logging.getLogger(__name__)

_SERVICE_ACCOUNT_NAMESPACE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


@dataclass
class KubeClients:
    core: Any
    custom: Any
    apiextensions: Any


def load_config() -> None:
    """Load in-cluster config when running in a pod, else the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded kubeconfig")


def create_clients() -> KubeClients:
    load_config()
    return KubeClients(
        core=client.CoreV1Api(),
        custom=client.CustomObjectsApi(),
        apiextensions=client.ApiextensionsV1Api(),
    )


def current_namespace(default: str) -> str:
    """Namespace of the controller's own pod, or `default` outside a cluster."""
    if os.path.exists(_SERVICE_ACCOUNT_NAMESPACE):
        with open(_SERVICE_ACCOUNT_NAMESPACE, encoding="utf-8") as f:
            ns = f.read().strip()
        if ns:
            return ns
    return default
