"""Kubernetes API client construction."""

from __future__ import annotations

import logging

from kubernetes import client, config

logger = logging.getLogger(__name__)

_config_loaded = False


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    global _config_loaded

    if _config_loaded:
        return
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded Kubernetes configuration from kubeconfig")
    _config_loaded = True


def get_custom_objects_api() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client.

    Returns:
        CustomObjectsApi instance
    """
    load_kube_config()
    return client.CustomObjectsApi()


def get_core_api() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    load_kube_config()
    return client.CoreV1Api()
