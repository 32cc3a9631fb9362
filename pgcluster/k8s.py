"""Kubernetes API access for the cluster reconciliation engine"""

import time
import base64
import logging
from typing import Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from pgcluster import constants

logger = logging.getLogger("postgres-operator.k8s")


def resource_not_found(exc: Exception) -> bool:
    return isinstance(exc, ApiException) and exc.status == 404


def resource_already_exists(exc: Exception) -> bool:
    return isinstance(exc, ApiException) and exc.status == 409


class KubernetesClient:
    """Handles all Kubernetes API interactions"""

    def __init__(self, api_client: Optional[client.ApiClient] = None,
                 max_retries: int = 5, retry_backoff_base: float = 2.0):
        if api_client is None:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                logger.warning("Failed to load in-cluster config, trying local kubeconfig")
                config.load_kube_config()

        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)
        self.custom = client.CustomObjectsApi(api_client)
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base

    def fetch_configmap(self, name: str, namespace: str, retry_count: int = 0) -> Optional[Dict[str, str]]:
        """
        Fetch ConfigMap data with exponential backoff retry logic

        Args:
            name: ConfigMap name
            namespace: Kubernetes namespace
            retry_count: Current retry attempt

        Returns:
            ConfigMap data or None if not found
        """
        try:
            cm = self.core.read_namespaced_config_map(name, namespace)
            return dict(cm.data or {})
        except ApiException as e:
            if e.status == 404:
                logger.warning(f"ConfigMap {name} not found in namespace {namespace}")
                return None
            elif retry_count < self.max_retries:
                sleep_time = self.retry_backoff_base ** retry_count
                logger.warning(f"Error fetching ConfigMap (attempt {retry_count + 1}/{self.max_retries}), "
                               f"retrying in {sleep_time}s: {e}")
                time.sleep(sleep_time)
                return self.fetch_configmap(name, namespace, retry_count + 1)
            else:
                logger.error(f"Failed to fetch ConfigMap after {self.max_retries} retries: {e}")
                raise

    def read_secret_value(self, name: str, namespace: str, key: str) -> Optional[str]:
        """
        Read and decode one key of a Secret

        Args:
            name: Secret name
            namespace: Kubernetes namespace
            key: Data key to decode

        Returns:
            Decoded value or None if the Secret or the key does not exist
        """
        try:
            secret = self.core.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                logger.warning(f"Secret {name} not found in namespace {namespace}")
                return None
            raise

        encoded = (secret.data or {}).get(key)
        if not encoded:
            logger.error(f"Secret {name} exists but has no {key!r} field")
            return None
        return base64.b64decode(encoded).decode()

    def get_oauth_token(self, name: str, namespace: str) -> Optional[str]:
        return self.read_secret_value(name, namespace, constants.OAUTH_TOKEN_SECRET_KEY)

    def patch_cluster_status(self, name: str, namespace: str, body: Dict):
        """Merge a status payload into the status sub-resource of a postgresql object"""
        return self.custom.patch_namespaced_custom_object_status(
            constants.CRD_GROUP, constants.CRD_VERSION, namespace, constants.CRD_PLURAL, name, body,
        )
