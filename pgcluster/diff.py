"""
Comparison of observed and desired cluster objects

Each sub-resource has its own rules: only the parts the operator actually
reconciles are compared, field by field.
"""

import logging
from typing import Optional, Tuple

from pgcluster.spec import Resources, Volume
from pgcluster.util import name_from_meta

logger = logging.getLogger("postgres-operator.diff")


def same_service_with(observed, desired) -> bool:
    """Services are compared on their allowed source ranges only"""
    return list(observed.spec.load_balancer_source_ranges or []) == \
        list(desired.spec.load_balancer_source_ranges or [])


def same_volume_with(observed: Volume, desired: Volume) -> bool:
    return observed.size == desired.size and observed.storage_class == desired.storage_class


def same_resources(observed: Resources, desired: Resources) -> bool:
    return (observed.requests.cpu == desired.requests.cpu
            and observed.requests.memory == desired.requests.memory
            and observed.limits.cpu == desired.limits.cpu
            and observed.limits.memory == desired.limits.memory)


def _ports(container):
    return [(p.name, p.container_port, p.protocol or "TCP", p.host_port)
            for p in container.ports or []]


def _resources(container):
    resources = container.resources
    if resources is None:
        return {}, {}
    return dict(resources.requests or {}), dict(resources.limits or {})


def _env_source(source):
    if source is None:
        return None
    if source.field_ref is not None:
        return "field", source.field_ref.field_path
    if source.secret_key_ref is not None:
        return "secret", source.secret_key_ref.name, source.secret_key_ref.key
    if source.config_map_key_ref is not None:
        return "configmap", source.config_map_key_ref.name, source.config_map_key_ref.key
    if source.resource_field_ref is not None:
        return "resource", source.resource_field_ref.resource
    return ()


def _env(container):
    return [(e.name, e.value, _env_source(e.value_from)) for e in container.env or []]


def compare_statefulset_with(observed, desired, log: Optional[logging.LoggerAdapter] = None) -> Tuple[bool, bool]:
    """
    Compare an observed StatefulSet with the desired one

    A different number of replicas is applied in place. A different
    container image, ports, resources or environment needs the pods to be
    recreated; the first such difference ends the comparison.

    Args:
        observed: StatefulSet as currently stored in Kubernetes
        desired: StatefulSet generated from the desired spec
        log: Logger to report malformed observed state

    Returns:
        Tuple of (equal, needs_recreate)
    """
    log = log or logger
    observed_containers = observed.spec.template.spec.containers or []
    desired_containers = desired.spec.template.spec.containers or []

    if not observed_containers:
        log.warning(f"StatefulSet {name_from_meta(observed.metadata)} has no container")
        return True, False

    equal = observed.spec.replicas == desired.spec.replicas

    if len(observed_containers) != len(desired_containers):
        return False, True

    current, wanted = observed_containers[0], desired_containers[0]
    if current.image != wanted.image:
        return False, True
    if _ports(current) != _ports(wanted):
        return False, True
    if _resources(current) != _resources(wanted):
        return False, True
    if _env(current) != _env(wanted):
        return False, True

    return equal, False
