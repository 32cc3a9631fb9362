"""
PostgreSQL cluster reconciliation engine for Kubernetes

Creates, updates and deletes the Kubernetes objects and database roles of
clusters declared as postgresql custom resources.
"""

from pgcluster.cluster import Cluster, ClusterConfig
from pgcluster.config import Config
from pgcluster.spec import PodEvent, PodEventType, PostgresStatus, Postgresql

__version__ = "0.1.0"

__all__ = [
    "Cluster",
    "ClusterConfig",
    "Config",
    "PodEvent",
    "PodEventType",
    "PostgresStatus",
    "Postgresql",
]
