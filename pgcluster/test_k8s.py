"""Tests for the Kubernetes API access"""

import base64
from unittest.mock import Mock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from pgcluster import constants
from pgcluster.k8s import KubernetesClient, resource_already_exists, resource_not_found


def _client(**kwargs):
    kube = KubernetesClient(api_client=Mock(), **kwargs)
    kube.core = Mock()
    kube.custom = Mock()
    return kube


def test_status_helpers():
    assert resource_not_found(ApiException(status=404))
    assert not resource_not_found(ApiException(status=409))
    assert resource_already_exists(ApiException(status=409))
    assert not resource_already_exists(ValueError("409"))


def test_fetch_configmap_retries():
    """Test ConfigMap fetching with backoff"""
    print("🧪 Testing ConfigMap retries...")

    kube = _client(max_retries=3)
    kube.core.read_namespaced_config_map.side_effect = [
        ApiException(status=500),
        ApiException(status=503),
        client.V1ConfigMap(data={"workers": "2"}),
    ]

    with patch("pgcluster.k8s.time.sleep") as sleep:
        data = kube.fetch_configmap("postgres-operator", "default")

    assert data == {"workers": "2"}, "Data should be returned after retries"
    assert [c[0][0] for c in sleep.call_args_list] == [1.0, 2.0], "Backoff should grow exponentially"

    print("✅ ConfigMap retry tests passed!")


def test_fetch_configmap_gives_up():
    kube = _client(max_retries=1)
    kube.core.read_namespaced_config_map.side_effect = ApiException(status=500)

    with patch("pgcluster.k8s.time.sleep"):
        with pytest.raises(ApiException):
            kube.fetch_configmap("postgres-operator", "default")

    assert kube.core.read_namespaced_config_map.call_count == 2


def test_fetch_missing_configmap():
    kube = _client()
    kube.core.read_namespaced_config_map.side_effect = ApiException(status=404)
    assert kube.fetch_configmap("postgres-operator", "default") is None


def test_get_oauth_token():
    kube = _client()
    token = base64.b64encode(b"s3cr3t").decode()
    kube.core.read_namespaced_secret.return_value = client.V1Secret(
        data={constants.OAUTH_TOKEN_SECRET_KEY: token})

    assert kube.get_oauth_token("postgresql-operator", "default") == "s3cr3t"
    kube.core.read_namespaced_secret.assert_called_once_with("postgresql-operator", "default")


def test_read_missing_secret_value():
    kube = _client()
    kube.core.read_namespaced_secret.return_value = client.V1Secret(data={"other": "eA=="})
    assert kube.read_secret_value("creds", "default", "password") is None

    kube.core.read_namespaced_secret.side_effect = ApiException(status=404)
    assert kube.read_secret_value("creds", "default", "password") is None


def test_patch_cluster_status():
    kube = _client()
    kube.patch_cluster_status("acid-test", "default", {"status": "Running"})

    kube.custom.patch_namespaced_custom_object_status.assert_called_once_with(
        "acid.zalan.do", "v1", "default", "postgresqls", "acid-test", {"status": "Running"})
