"""Kubernetes-backed object accessor and API clients."""

from .client import get_core_api, get_custom_objects_api, load_kube_config
from .objects import KubernetesObjectAccessor, ObjectAccessor

__all__ = [
    "KubernetesObjectAccessor",
    "ObjectAccessor",
    "get_core_api",
    "get_custom_objects_api",
    "load_kube_config",
]
