"""
Generation of the Kubernetes objects backing a cluster

Every function here is pure: it builds the desired object from the cluster
name, the desired spec and the operator configuration.
"""

import json
import base64
from typing import Dict, List, Optional

from kubernetes import client

from pgcluster import constants
from pgcluster.config import Config
from pgcluster.spec import ClusterName, PgUser, PostgresSpec, Resources


def cluster_labels(cluster_name: ClusterName, config: Config) -> Dict[str, str]:
    labels = dict(config.cluster_labels)
    labels[config.cluster_name_label] = cluster_name.name
    return labels


def label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def secret_name(username: str, cluster_name: ClusterName, config: Config) -> str:
    name = config.secret_name_template.format(
        username=username.replace("_", "-"),
        cluster=cluster_name.name,
        tprkind=constants.CRD_KIND,
        tprgroup=constants.CRD_GROUP,
    )
    return name.lower()


def number_of_instances(requested: int, config: Config) -> int:
    """Clamp the requested number of instances to the configured bounds"""
    if config.min_instances > 0 and requested < config.min_instances:
        return config.min_instances
    if config.max_instances > 0 and requested > config.max_instances:
        return config.max_instances
    return requested


def resource_requirements(resources: Resources, config: Config) -> client.V1ResourceRequirements:
    """Requests and limits from the spec, operator defaults for anything missing"""
    return client.V1ResourceRequirements(
        requests={
            "cpu": resources.requests.cpu or config.default_cpu_request,
            "memory": resources.requests.memory or config.default_memory_request,
        },
        limits={
            "cpu": resources.limits.cpu or config.default_cpu_limit,
            "memory": resources.limits.memory or config.default_memory_limit,
        },
    )


def master_dns_name(cluster_name: ClusterName, team: str, config: Config) -> str:
    return config.master_dns_name_format.format(
        cluster=cluster_name.name, team=team, hostedzone=config.db_hosted_zone,
    ).lower()


def gen_endpoint(cluster_name: ClusterName, config: Config) -> client.V1Endpoints:
    """Endpoint without subsets; Patroni fills in the master address"""
    return client.V1Endpoints(
        metadata=client.V1ObjectMeta(
            name=cluster_name.name,
            namespace=cluster_name.namespace,
            labels=cluster_labels(cluster_name, config),
        ),
    )


def gen_service(cluster_name: ClusterName, team: str, allowed_source_ranges: Optional[List[str]],
                config: Config) -> client.V1Service:
    """
    Service in front of the master pod

    The service has no selector: it shares its name with the endpoint
    maintained by Patroni.
    """
    annotations = {}
    service_spec = client.V1ServiceSpec(
        type="ClusterIP",
        ports=[client.V1ServicePort(name="postgresql", port=constants.POSTGRES_PORT,
                                    target_port=constants.POSTGRES_PORT)],
    )
    if config.enable_load_balancer:
        service_spec.type = "LoadBalancer"
        service_spec.load_balancer_source_ranges = list(allowed_source_ranges or [])
        annotations["external-dns.alpha.kubernetes.io/hostname"] = master_dns_name(cluster_name, team, config)
        annotations["service.beta.kubernetes.io/aws-load-balancer-connection-idle-timeout"] = "3600"

    return client.V1Service(
        metadata=client.V1ObjectMeta(
            name=cluster_name.name,
            namespace=cluster_name.namespace,
            labels=cluster_labels(cluster_name, config),
            annotations=annotations or None,
        ),
        spec=service_spec,
    )


def gen_secret(user: PgUser, cluster_name: ClusterName, config: Config) -> client.V1Secret:
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=secret_name(user.name, cluster_name, config),
            namespace=cluster_name.namespace,
            labels=cluster_labels(cluster_name, config),
        ),
        type="Opaque",
        data={
            constants.SECRET_USERNAME_KEY: base64.b64encode(user.name.encode()).decode(),
            constants.SECRET_PASSWORD_KEY: base64.b64encode(user.password.encode()).decode(),
        },
    )


def spilo_configuration(spec: PostgresSpec, config: Config) -> str:
    return json.dumps({
        "postgresql": {"parameters": dict(sorted(spec.parameters.items()))},
        "bootstrap": {
            "initdb": [{"auth-host": "md5"}, {"auth-local": "trust"}],
            "users": {
                config.pam_role_name: {"password": "", "options": ["CREATEDB", "NOLOGIN"]},
            },
        },
    }, sort_keys=True)


def gen_env(cluster_name: ClusterName, spec: PostgresSpec, config: Config) -> List[client.V1EnvVar]:
    def from_secret(username):
        return client.V1EnvVarSource(secret_key_ref=client.V1SecretKeySelector(
            name=secret_name(username, cluster_name, config), key=constants.SECRET_PASSWORD_KEY))

    def from_field(path):
        return client.V1EnvVarSource(field_ref=client.V1ObjectFieldSelector(
            api_version="v1", field_path=path))

    return [
        client.V1EnvVar(name="SCOPE", value=cluster_name.name),
        client.V1EnvVar(name="PGROOT", value=constants.PG_ROOT),
        client.V1EnvVar(name="ETCD_HOST", value=config.etcd_host),
        client.V1EnvVar(name="POD_IP", value_from=from_field("status.podIP")),
        client.V1EnvVar(name="POD_NAMESPACE", value_from=from_field("metadata.namespace")),
        client.V1EnvVar(name="PGUSER_SUPERUSER", value=config.super_username),
        client.V1EnvVar(name="PGPASSWORD_SUPERUSER", value_from=from_secret(config.super_username)),
        client.V1EnvVar(name="PGUSER_STANDBY", value=config.replication_username),
        client.V1EnvVar(name="PGPASSWORD_STANDBY", value_from=from_secret(config.replication_username)),
        client.V1EnvVar(name="PAM_OAUTH2", value=config.pam_configuration),
        client.V1EnvVar(name="KUBERNETES_SCOPE_LABEL", value=config.cluster_name_label),
        client.V1EnvVar(name="KUBERNETES_ROLE_LABEL", value=config.pod_role_label),
        client.V1EnvVar(name="KUBERNETES_LABELS", value=json.dumps(config.cluster_labels, sort_keys=True)),
        client.V1EnvVar(name="SPILO_CONFIGURATION", value=spilo_configuration(spec, config)),
    ]


def gen_volume_claim_template(spec: PostgresSpec) -> client.V1PersistentVolumeClaim:
    claim_spec = client.V1PersistentVolumeClaimSpec(
        access_modes=["ReadWriteOnce"],
        resources=client.V1VolumeResourceRequirements(requests={"storage": spec.volume.size}),
    )
    if spec.volume.storage_class:
        claim_spec.storage_class_name = spec.volume.storage_class

    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(name=constants.DATA_VOLUME_NAME),
        spec=claim_spec,
    )


def gen_statefulset(cluster_name: ClusterName, spec: PostgresSpec, config: Config) -> client.V1StatefulSet:
    """
    StatefulSet running the Spilo pods of a cluster

    The OnDelete update strategy leaves pod replacement to the operator.
    """
    labels = cluster_labels(cluster_name, config)

    container = client.V1Container(
        name="postgres",
        image=config.docker_image,
        image_pull_policy="IfNotPresent",
        ports=[
            client.V1ContainerPort(container_port=constants.PATRONI_PORT, protocol="TCP"),
            client.V1ContainerPort(container_port=constants.POSTGRES_PORT, protocol="TCP"),
            client.V1ContainerPort(container_port=constants.PATRONI_API_PORT, protocol="TCP"),
        ],
        resources=resource_requirements(spec.resources, config),
        env=gen_env(cluster_name, spec, config),
        volume_mounts=[client.V1VolumeMount(name=constants.DATA_VOLUME_NAME,
                                            mount_path=constants.DATA_VOLUME_PATH)],
    )

    template = client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(labels=labels, namespace=cluster_name.namespace),
        spec=client.V1PodSpec(
            service_account_name=config.service_account_name,
            termination_grace_period_seconds=300,
            containers=[container],
        ),
    )

    return client.V1StatefulSet(
        metadata=client.V1ObjectMeta(
            name=cluster_name.name,
            namespace=cluster_name.namespace,
            labels=labels,
        ),
        spec=client.V1StatefulSetSpec(
            replicas=number_of_instances(spec.number_of_instances, config),
            service_name=cluster_name.name,
            selector=client.V1LabelSelector(match_labels=labels),
            template=template,
            volume_claim_templates=[gen_volume_claim_template(spec)],
            update_strategy=client.V1StatefulSetUpdateStrategy(type="OnDelete"),
        ),
    )
