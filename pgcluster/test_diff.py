"""Tests for the comparison of observed and desired objects"""

from kubernetes import client

from pgcluster.config import Config
from pgcluster.diff import compare_statefulset_with, same_resources, same_service_with, same_volume_with
from pgcluster.k8sres import gen_service, gen_statefulset
from pgcluster.spec import ClusterName, PostgresSpec, ResourceDescription, Resources, Volume

CLUSTER = ClusterName(namespace="default", name="acid-test")


def _statefulset(config=None, **spec):
    spec.setdefault("volume", Volume(size="1Gi"))
    spec.setdefault("number_of_instances", 2)
    return gen_statefulset(CLUSTER, PostgresSpec(**spec), config or Config())


def test_identical_statefulsets():
    assert compare_statefulset_with(_statefulset(), _statefulset()) == (True, False)


def test_replica_count_only():
    observed, desired = _statefulset(), _statefulset(number_of_instances=3)
    assert compare_statefulset_with(observed, desired) == (False, False)


def test_image_change_needs_recreate():
    observed = _statefulset()
    desired = _statefulset(Config({"docker_image": "registry.example.com/spilo:2.0"}))
    assert compare_statefulset_with(observed, desired) == (False, True)


def test_added_env_needs_recreate():
    observed, desired = _statefulset(), _statefulset()
    desired.spec.template.spec.containers[0].env.append(client.V1EnvVar(name="EXTRA", value="1"))
    assert compare_statefulset_with(observed, desired) == (False, True)


def test_resources_change_needs_recreate():
    observed = _statefulset()
    desired = _statefulset(resources=Resources(limits=ResourceDescription(cpu="2", memory="4Gi")))
    assert compare_statefulset_with(observed, desired) == (False, True)


def test_ports_change_needs_recreate():
    observed, desired = _statefulset(), _statefulset()
    desired.spec.template.spec.containers[0].ports.pop()
    assert compare_statefulset_with(observed, desired) == (False, True)


def test_replicas_and_image_change():
    observed = _statefulset()
    desired = _statefulset(Config({"docker_image": "other"}), number_of_instances=5)
    assert compare_statefulset_with(observed, desired) == (False, True)


def test_observed_without_containers_is_equal():
    observed, desired = _statefulset(), _statefulset(number_of_instances=4)
    observed.spec.template.spec.containers = []
    assert compare_statefulset_with(observed, desired) == (True, False)


def test_service_compared_on_source_ranges_only():
    config = Config()
    observed = gen_service(CLUSTER, "acid", ["10.0.0.0/8"], config)

    assert same_service_with(observed, gen_service(CLUSTER, "other-team", ["10.0.0.0/8"], config))
    assert not same_service_with(observed, gen_service(CLUSTER, "acid", ["192.168.0.0/16"], config))


def test_volume_and_resources():
    assert same_volume_with(Volume(size="1Gi"), Volume(size="1Gi"))
    assert not same_volume_with(Volume(size="1Gi"), Volume(size="2Gi"))
    assert same_resources(Resources(), Resources())
    assert not same_resources(Resources(), Resources(requests=ResourceDescription(cpu="1")))
