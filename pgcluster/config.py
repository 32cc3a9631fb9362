"""
Operator configuration

Options are declared once in OPTIONS as (key, default, parser, validator)
tuples. A Config can be built from a plain mapping, from environment
variables or from a Kubernetes ConfigMap.

Some options are not read inside this package and only belong to the
process driving the clusters: ready_wait_interval, ready_wait_timeout,
resync_period, watched_namespace, workers and debug_logging. They are
parsed and validated here so every consumer sees one schema.
"""

import os
import re
import yaml
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pgcluster import constants
from pgcluster.errors import ConfigError

logger = logging.getLogger("postgres-operator.config")

CONFIG_YAML_KEY = "config.yaml"

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


# ============================================================================
# PARSERS
# ============================================================================

def parse_duration(value: str) -> float:
    """
    Parse a duration such as "4s", "10m" or "1h" into seconds

    Args:
        value: Duration string, a bare number is taken as seconds

    Returns:
        Number of seconds
    """
    value = str(value).strip()
    match = _DURATION_RE.match(value)
    if match:
        return float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"invalid duration {value!r}")


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    value = str(value).strip().lower()
    if value in ("true", "yes", "on", "1"):
        return True
    if value in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"invalid boolean {value!r}")


def parse_map(value) -> Dict[str, str]:
    """Parse "key1:value1,key2:value2" into a dict"""
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    result = {}
    for item in str(value).split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, val = item.partition(":")
        if not sep:
            raise ValueError(f"invalid map item {item!r}")
        result[key.strip()] = val.strip()
    return result


def parse_list(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [v.strip() for v in str(value).split(",") if v.strip()]


def parse_str(value) -> str:
    return str(value)


def parse_int(value) -> int:
    return int(value)


def positive(value) -> bool:
    return value > 0


def non_negative(value) -> bool:
    return value >= 0


# ============================================================================
# SCHEMA
# ============================================================================

OptionSpec = Tuple[str, str, Callable[[Any], Any], Optional[Callable[[Any], bool]]]

OPTIONS: List[OptionSpec] = [
    # Custom resource
    ("ready_wait_interval", "4s", parse_duration, positive),
    ("ready_wait_timeout", "30s", parse_duration, positive),
    ("resync_period", "5m", parse_duration, positive),
    # Kubernetes resources
    ("resource_check_interval", "3s", parse_duration, positive),
    ("resource_check_timeout", "10m", parse_duration, positive),
    ("pod_label_wait_timeout", "10m", parse_duration, positive),
    ("pod_deletion_wait_timeout", "10m", parse_duration, positive),
    ("cluster_labels", "application:spilo", parse_map, None),
    ("cluster_name_label", "cluster-name", parse_str, None),
    ("pod_role_label", "spilo-role", parse_str, None),
    ("default_cpu_request", "100m", parse_str, None),
    ("default_memory_request", "100Mi", parse_str, None),
    ("default_cpu_limit", "3", parse_str, None),
    ("default_memory_limit", "1Gi", parse_str, None),
    ("max_instances", "-1", parse_int, None),
    ("min_instances", "-1", parse_int, None),
    # Authentication
    ("secret_name_template", "{username}.{cluster}.credentials.{tprkind}.{tprgroup}", parse_str, None),
    ("pam_role_name", "zalandos", parse_str, None),
    ("pam_configuration", "https://info.example.com/oauth2/tokeninfo?access_token= uid realm=/employees",
     parse_str, None),
    ("teams_api_url", "https://teams.example.com/api/", parse_str, None),
    ("oauth_token_secret_name", "postgresql-operator", parse_str, None),
    ("super_username", "postgres", parse_str, None),
    ("replication_username", "standby", parse_str, None),
    # Operator
    ("watched_namespace", "", parse_str, None),
    ("etcd_host", constants.ETCD_HOST, parse_str, None),
    ("docker_image", constants.SPILO_IMAGE, parse_str, None),
    ("service_account_name", "operator", parse_str, None),
    ("db_hosted_zone", "db.example.com", parse_str, None),
    ("master_dns_name_format", "{cluster}.{team}.{hostedzone}", parse_str, None),
    ("debug_logging", "true", parse_bool, None),
    ("enable_database_access", "true", parse_bool, None),
    ("enable_teams_api", "true", parse_bool, None),
    ("enable_team_superuser", "false", parse_bool, None),
    ("enable_load_balancer", "true", parse_bool, None),
    ("workers", "4", parse_int, positive),
    ("protected_role_names", "admin", parse_list, None),
    # ConfigMap fetching
    ("max_retries", "5", parse_int, non_negative),
    ("retry_backoff_base", "2.0", float, positive),
]


# ============================================================================
# CONFIG
# ============================================================================

class Config:
    """Operator configuration, one attribute per entry of OPTIONS"""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        values = values or {}
        unknown = set(values) - {key for key, _, _, _ in OPTIONS}
        if unknown:
            logger.warning(f"Ignoring unknown configuration options: {sorted(unknown)}")

        for key, default, parser, validator in OPTIONS:
            raw = values.get(key, default)
            try:
                value = parser(raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for option {key!r}: {e}") from e
            if validator is not None and not validator(value):
                raise ConfigError(f"Value {raw!r} is not allowed for option {key!r}")
            setattr(self, key, value)

        self._validate()

    def _validate(self):
        if 0 < self.max_instances < self.min_instances:
            raise ConfigError(f"minimum number of instances {self.min_instances} "
                              f"is set higher than the maximum number {self.max_instances}")

    @classmethod
    def from_map(cls, m: Dict[str, Any]) -> "Config":
        return cls(dict(m))

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Config":
        """Build a Config from upper-cased environment variables"""
        environ = os.environ if environ is None else environ
        values = {}
        for key, _, _, _ in OPTIONS:
            if key.upper() in environ:
                values[key] = environ[key.upper()]
        return cls(values)

    @classmethod
    def from_configmap(cls, kube_client, name: str, namespace: str) -> "Config":
        """
        Build a Config from a ConfigMap

        The ConfigMap holds either flat option keys or a single config.yaml key.

        Args:
            kube_client: KubernetesClient used to read the ConfigMap
            name: ConfigMap name
            namespace: Kubernetes namespace

        Returns:
            Config, with defaults only if the ConfigMap does not exist
        """
        data = kube_client.fetch_configmap(name, namespace)
        if data is None:
            return cls()
        if CONFIG_YAML_KEY in data:
            try:
                parsed = yaml.safe_load(data[CONFIG_YAML_KEY]) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Error parsing {CONFIG_YAML_KEY}: {e}") from e
            if not isinstance(parsed, dict):
                raise ConfigError(f"{CONFIG_YAML_KEY} must hold a mapping")
            return cls(parsed)
        return cls(data)

    def as_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key, _, _, _ in OPTIONS}
