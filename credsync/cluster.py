"""Read-only access to secrets and build configurations in the cluster."""

import logging
from kubernetes.client.rest import ApiException

from .errors import ClusterError
from .models import BuildConfigRef, ClusterSecret

logger = logging.getLogger("credsync")

BUILD_GROUP = "build.openshift.io"
BUILD_VERSION = "v1"
BUILD_CONFIGS = "buildconfigs"


def get_k8s_apis():
    """Initialize and return the core and custom objects Kubernetes API clients."""
    from kubernetes import client, config

    # Load kube config
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster kube config.")
    except config.ConfigException:
        logger.info(
            "Could not load in-cluster config. Falling back to local kube config.")
        config.load_kube_config()
    return client.CoreV1Api(), client.CustomObjectsApi()


class ClusterClient:
    """Fetches secrets and OpenShift build configurations."""

    def __init__(self, v1_api, custom_api):
        self.v1 = v1_api
        self.custom = custom_api

    def get_secret(self, namespace, name):
        """Return the secret as a ClusterSecret, or None when it does not exist."""
        try:
            secret = self.v1.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Secret '{name}' not found in ns '{namespace}'")
                return None
            raise ClusterError(
                f"Failed to read secret '{name}' in ns '{namespace}': {e.status} {e.reason}") from e
        return ClusterSecret.from_k8s(secret)

    def get_build_config(self, namespace, name):
        try:
            resource = self.custom.get_namespaced_custom_object(
                BUILD_GROUP, BUILD_VERSION, namespace, BUILD_CONFIGS, name)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"BuildConfig '{name}' not found in ns '{namespace}'")
                return None
            raise ClusterError(
                f"Failed to read BuildConfig '{name}' in ns '{namespace}': {e.status} {e.reason}") from e
        return BuildConfigRef.from_resource(resource)

    def list_secrets(self, scope, label_selector=None):
        kwargs = {"label_selector": label_selector} if label_selector else {}
        try:
            if scope.is_single_namespace:
                secrets = self.v1.list_namespaced_secret(scope.namespace, **kwargs).items
            else:
                secrets = self.v1.list_secret_for_all_namespaces(**kwargs).items
        except ApiException as e:
            raise ClusterError(f"Failed to list secrets: {e.status} {e.reason}") from e
        return [ClusterSecret.from_k8s(s) for s in secrets]

    def list_build_configs(self, scope):
        try:
            if scope.is_single_namespace:
                result = self.custom.list_namespaced_custom_object(
                    BUILD_GROUP, BUILD_VERSION, scope.namespace, BUILD_CONFIGS)
            else:
                result = self.custom.list_cluster_custom_object(
                    BUILD_GROUP, BUILD_VERSION, BUILD_CONFIGS)
        except ApiException as e:
            raise ClusterError(f"Failed to list BuildConfigs: {e.status} {e.reason}") from e
        return [BuildConfigRef.from_resource(item) for item in result.get("items", [])]
