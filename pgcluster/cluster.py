"""
PostgreSQL cluster lifecycle

A Cluster represents one postgresql custom resource: its desired spec, the
Kubernetes objects created for it, the database roles it declares and the
pod event dispatcher used while pods are being replaced.

Create, Update and Delete are not synchronized internally; the caller runs
at most one of them at a time per cluster.
"""

import json
import queue
import base64
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from pgcluster import constants
from pgcluster.config import Config
from pgcluster.diff import compare_statefulset_with, same_resources, same_service_with, same_volume_with
from pgcluster.dispatcher import PodEventDispatcher
from pgcluster.errors import (
    ClusterError,
    DatabaseError,
    InvalidFlagError,
    InvalidUserError,
    ReadyTimeoutError,
    TeamsAPIError,
)
from pgcluster.k8s import KubernetesClient, resource_already_exists, resource_not_found
from pgcluster.k8sres import (
    cluster_labels,
    gen_endpoint,
    gen_secret,
    gen_service,
    gen_statefulset,
    label_selector,
)
from pgcluster.log import GREEN, RESET, WHITE, cluster_logger
from pgcluster.pg import DatabaseClient
from pgcluster.spec import (
    ClusterName,
    KubeResources,
    PgUser,
    PodEvent,
    PodEventType,
    PodName,
    PostgresStatus,
    Postgresql,
)
from pgcluster.teams import TeamsAPI
from pgcluster.users import normalize_user_flags, produce_sync_requests
from pgcluster.util import is_valid_name, name_from_meta, pod_is_ready, pod_role, random_password, retry


@dataclass
class ClusterConfig:
    """Collaborators shared by all clusters of an operator"""
    kube_client: KubernetesClient
    op_config: Config
    teams_api: Optional[TeamsAPI] = None


class Cluster:
    """
    Reconciles one PostgreSQL cluster

    Args:
        cfg: Shared collaborators
        postgresql: The custom resource as observed when the cluster was created
    """

    def __init__(self, cfg: ClusterConfig, postgresql: Postgresql):
        self.config = cfg
        self.op_config = cfg.op_config
        self.kube = cfg.kube_client
        self.postgresql = postgresql
        self.resources = KubeResources()
        self.pg_users: Dict[str, PgUser] = {}
        self.db: Optional[DatabaseClient] = None

        self._cluster_name = ClusterName(namespace=postgresql.metadata.namespace,
                                         name=postgresql.metadata.name)
        self.logger = cluster_logger(self._cluster_name)
        self.dispatcher = PodEventDispatcher(str(self._cluster_name))

    @property
    def cluster_name(self) -> ClusterName:
        return self._cluster_name

    @property
    def spec(self):
        return self.postgresql.spec

    @property
    def namespace(self) -> str:
        return self._cluster_name.namespace

    def team_name(self) -> str:
        return self.spec.team_id

    def labels(self) -> Dict[str, str]:
        return cluster_labels(self._cluster_name, self.op_config)

    def system_user_names(self) -> List[str]:
        return [self.op_config.super_username, self.op_config.replication_username]

    # ========================================================================
    # EVENTS AND STATUS
    # ========================================================================

    def run(self, stop_event: threading.Event):
        """Dispatch pod events until stop_event is set"""
        self.dispatcher.run(stop_event)

    def receive_pod_event(self, event: PodEvent) -> bool:
        """Hand a pod event to the dispatcher, blocking until it is taken"""
        return self.dispatcher.send(event)

    def set_status(self, status):
        """
        Store a status on the custom resource

        Failures are logged only: reporting a status never fails the
        operation it describes.

        Args:
            status: PostgresStatus or any JSON-serializable payload
        """
        payload = status.value if isinstance(status, PostgresStatus) else status
        try:
            body = json.loads(json.dumps({"status": payload}))
        except (TypeError, ValueError) as e:
            self.logger.error(f"Can't marshal status: {e}")
            return

        try:
            self.kube.patch_cluster_status(self._cluster_name.name, self.namespace, body)
        except ApiException as e:
            if resource_not_found(e):
                self.logger.warning("Can't set status for the non-existing cluster")
                return
            self.logger.warning(f"Can't set status for cluster {self._cluster_name}: {e}")
        except Exception as e:
            self.logger.warning(f"Can't set status for cluster {self._cluster_name}: {e}")

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def create(self):
        """
        Create every Kubernetes object and database role of the cluster

        Steps already applied are kept when a later step fails; a following
        update reconciles them.

        Raises:
            ClusterError: Naming the step that failed
        """
        try:
            ep = self.create_endpoint()
        except (ApiException, HTTPError) as e:
            raise ClusterError(f"Can't create Endpoint: {e}") from e
        self.logger.info(f"Endpoint {name_from_meta(ep.metadata)} has been successfully created")

        try:
            service = self.create_service()
        except (ApiException, HTTPError) as e:
            raise ClusterError(f"Can't create Service: {e}") from e
        self.logger.info(f"Service {name_from_meta(service.metadata)} has been successfully created")

        self.init_system_users()
        try:
            self.init_robot_users()
        except ClusterError as e:
            raise ClusterError(f"Can't init robot users: {e}") from e

        try:
            self.init_human_users()
        except ClusterError as e:
            raise ClusterError(f"Can't init human users: {e}") from e

        try:
            self.apply_secrets()
        except ClusterError as e:
            raise ClusterError(f"Can't create Secrets: {e}") from e
        self.logger.info("Secrets have been successfully created")

        try:
            ss = self.create_statefulset()
        except (ApiException, HTTPError) as e:
            raise ClusterError(f"Can't create StatefulSet: {e}") from e
        self.logger.info(f"StatefulSet {name_from_meta(ss.metadata)} has been successfully created")

        self.logger.info("Waiting for cluster being ready")
        try:
            self.wait_statefulset_pods_ready()
        except ReadyTimeoutError as e:
            self.logger.error(f"Failed to create cluster: {e}")
            raise
        except (ApiException, HTTPError) as e:
            raise ClusterError(f"Can't check pods readiness: {e}") from e

        if self.database_access_disabled():
            self.logger.info("Database access is disabled, skipping roles and databases")
        else:
            self.sync_roles_and_databases()
            self.logger.info("Users have been successfully created")

        self.list_resources()
        self.logger.info(f"{GREEN}Cluster has been created{RESET}")

    def update(self, new_postgresql: Postgresql):
        """
        Bring the cluster in line with a new desired spec

        Sub-resources are applied in order: Service, volume, StatefulSet,
        then pod recreation when the StatefulSet or the resources changed in
        a way running pods cannot pick up. A change of the PostgreSQL version
        is refused.

        Raises:
            ClusterError: Naming the step that failed
        """
        new_spec = new_postgresql.spec
        self.logger.info(f"Cluster update from version {self.postgresql.metadata.resource_version} "
                         f"to {new_postgresql.metadata.resource_version}")

        new_service = gen_service(self._cluster_name, new_spec.team_id, new_spec.allowed_source_ranges,
                                  self.op_config)
        if self.resources.service is None:
            self.logger.warning("Service is missing, creating it")
            try:
                self.resources.service = self.kube.core.create_namespaced_service(self.namespace, new_service)
            except (ApiException, HTTPError) as e:
                raise ClusterError(f"Can't create Service: {e}") from e
        elif not same_service_with(self.resources.service, new_service):
            self.logger.info(f"LoadBalancer configuration has changed for Service "
                             f"{name_from_meta(self.resources.service.metadata)}: "
                             f"{self.resources.service.spec.load_balancer_source_ranges} -> "
                             f"{new_service.spec.load_balancer_source_ranges}")
            try:
                self.update_service(new_service)
            except (ApiException, HTTPError) as e:
                raise ClusterError(f"Can't update Service: {e}") from e
            self.logger.info(f"Service {name_from_meta(self.resources.service.metadata)} has been updated")

        if not same_volume_with(self.spec.volume, new_spec.volume):
            # resizing volumes is left to the administrator
            self.logger.info(f"Volume specification has been changed: {self.spec.volume} -> {new_spec.volume}")

        new_statefulset = gen_statefulset(self._cluster_name, new_spec, self.op_config)
        if self.resources.statefulset is None:
            self.logger.warning("StatefulSet is missing, creating it")
            try:
                self.resources.statefulset = self.kube.apps.create_namespaced_stateful_set(self.namespace,
                                                                                           new_statefulset)
            except (ApiException, HTTPError) as e:
                raise ClusterError(f"Can't create StatefulSet: {e}") from e
            same_statefulset, recreate = True, False
        else:
            same_statefulset, recreate = compare_statefulset_with(self.resources.statefulset, new_statefulset,
                                                                  self.logger)
        if not same_statefulset:
            self.logger.info(f"StatefulSet {name_from_meta(self.resources.statefulset.metadata)} has been changed")
            try:
                self.update_statefulset(new_statefulset)
            except (ApiException, HTTPError) as e:
                raise ClusterError(f"Can't update StatefulSet: {e}") from e
            self.logger.info(f"StatefulSet {name_from_meta(self.resources.statefulset.metadata)} has been updated")

        if self.spec.pg_version != new_spec.pg_version:
            self.logger.warning(f"Postgresql version change ({self.spec.pg_version} -> {new_spec.pg_version}) "
                                f"is not allowed")

        if not same_resources(self.spec.resources, new_spec.resources):
            recreate = True

        if recreate:
            self.logger.info("Rolling update is needed")
            try:
                self.recreate_pods()
            except (ClusterError, ApiException, HTTPError) as e:
                raise ClusterError(f"Can't recreate Pods: {e}") from e
            self.logger.info("Rolling update has been finished")

        old_spec = self.spec
        self.postgresql = replace(
            self.postgresql,
            metadata=replace(self.postgresql.metadata,
                             resource_version=new_postgresql.metadata.resource_version),
            spec=replace(new_spec, pg_version=old_spec.pg_version),
        )

        if old_spec.users != new_spec.users or old_spec.databases != new_spec.databases:
            self.logger.info("Declared users or databases have changed")
            try:
                self.init_robot_users()
            except ClusterError as e:
                raise ClusterError(f"Can't init robot users: {e}") from e
            try:
                self.apply_secrets()
            except ClusterError as e:
                raise ClusterError(f"Can't create Secrets: {e}") from e
            if not self.database_access_disabled():
                self.sync_roles_and_databases()

    def delete(self):
        """
        Delete every Kubernetes object of the cluster

        Each step is attempted even if a previous one failed. Only a failure
        to delete the persistent volume claims is raised.

        Raises:
            ClusterError: The persistent volume claims could not be deleted
        """
        steps = [
            ("Endpoint", self.delete_endpoint),
            ("Service", self.delete_service),
            ("StatefulSet", self.delete_statefulset),
        ]
        for kind, delete in steps:
            try:
                name = delete()
            except Exception as e:
                self.logger.error(f"Can't delete {kind}: {e}")
            else:
                self.logger.info(f"{kind} {name} has been deleted")

        for uid, secret in list(self.resources.secrets.items()):
            try:
                self.delete_secret(uid, secret)
            except Exception as e:
                self.logger.error(f"Can't delete Secret: {e}")
            else:
                self.logger.info(f"Secret {name_from_meta(secret.metadata)} has been deleted")

        try:
            self.delete_pods()
        except Exception as e:
            self.logger.error(f"Can't delete Pods: {e}")
        else:
            self.logger.info("Pods have been deleted")

        try:
            self.delete_persistent_volume_claims()
        except (ApiException, HTTPError) as e:
            raise ClusterError(f"Can't delete PersistentVolumeClaims: {e}") from e

    # ========================================================================
    # USERS
    # ========================================================================

    def init_system_users(self):
        """Superuser and replication user; their roles are created by Spilo"""
        for username in self.system_user_names():
            self.pg_users[username] = PgUser(name=username,
                                             password=random_password(constants.PASSWORD_LENGTH))

    def init_robot_users(self):
        """
        Add the users declared in the spec

        Users already known keep their password and get the declared flags.

        Raises:
            InvalidUserError: A username is invalid or reserved
            InvalidFlagError: The flags of a user are invalid
        """
        reserved = set(self.system_user_names()) | set(self.op_config.protected_role_names)
        for username, user_flags in self.spec.users.items():
            if not is_valid_name(username):
                raise InvalidUserError(f"Invalid username: {username!r}")
            if username in reserved:
                raise InvalidUserError(f"Username {username!r} is reserved")

            try:
                flags = normalize_user_flags(user_flags)
            except InvalidFlagError as e:
                raise InvalidFlagError(f"Invalid flags for user {username!r}: {e}") from e

            existing = self.pg_users.get(username)
            if existing is not None and existing.password:
                existing.flags = flags
                continue
            self.pg_users[username] = PgUser(name=username,
                                             password=random_password(constants.PASSWORD_LENGTH),
                                             flags=flags)

    def init_human_users(self):
        """
        Add a login role without password for every member of the owning team

        Raises:
            TeamsAPIError: The team members could not be resolved
        """
        if not self.op_config.enable_teams_api:
            self.logger.debug("Teams API is disabled, skipping human users")
            return

        flags = [constants.ROLE_FLAG_LOGIN]
        if self.op_config.enable_team_superuser:
            flags = [constants.ROLE_FLAG_SUPERUSER, constants.ROLE_FLAG_LOGIN]

        for username in self.get_team_members():
            if username in self.pg_users:
                self.logger.warning(f"Team member {username} clashes with a declared user, skipping")
                continue
            self.pg_users[username] = PgUser(name=username, flags=list(flags),
                                             member_of=[self.op_config.pam_role_name])

    def get_team_members(self) -> List[str]:
        team = self.team_name()
        if not team:
            self.logger.debug("No team declared, no human users")
            return []
        if self.config.teams_api is None:
            raise TeamsAPIError("Teams API client is not configured")

        secret_ref = self.op_config.oauth_token_secret_name
        namespace, _, name = secret_ref.rpartition("/")
        try:
            token = self.kube.get_oauth_token(name, namespace or "default")
        except (ApiException, HTTPError) as e:
            raise TeamsAPIError(f"Can't get OAuth token: {e}") from e

        try:
            return self.config.teams_api.team_members(team, token)
        except TeamsAPIError as e:
            raise TeamsAPIError(f"Can't get list of team members: {e}") from e

    def apply_secrets(self):
        """
        Store the credentials of every password-bearing user in a Secret

        When the Secret already exists, the password it holds wins.

        Raises:
            ClusterError: A Secret could not be created or read
        """
        for username, user in self.pg_users.items():
            if not user.password:
                continue

            secret = gen_secret(user, self._cluster_name, self.op_config)
            try:
                stored = self.kube.core.create_namespaced_secret(self.namespace, secret)
                self.logger.debug(f"Created new Secret {name_from_meta(stored.metadata)}")
            except ApiException as e:
                if not resource_already_exists(e):
                    raise ClusterError(f"Can't create Secret for user {username}: {e}") from e
                try:
                    stored = self.kube.core.read_namespaced_secret(secret.metadata.name, self.namespace)
                except (ApiException, HTTPError) as read_error:
                    raise ClusterError(f"Can't get Secret for user {username}: {read_error}") from read_error
                encoded = (stored.data or {}).get(constants.SECRET_PASSWORD_KEY)
                if encoded:
                    user.password = base64.b64decode(encoded).decode()
                self.logger.debug(f"Secret {name_from_meta(stored.metadata)} already exists, "
                                  f"fetching its password")
            except HTTPError as e:
                raise ClusterError(f"Can't create Secret for user {username}: {e}") from e

            self.resources.secrets[stored.metadata.uid] = stored

    # ========================================================================
    # DATABASE
    # ========================================================================

    def database_access_disabled(self) -> bool:
        if not self.op_config.enable_database_access:
            self.logger.debug("Database access is disabled")
        return not self.op_config.enable_database_access

    def pg_host(self) -> str:
        return f"{self._cluster_name.name}.{self.namespace}.svc.cluster.local"

    def init_db_conn(self):
        if self.db is None:
            superuser = self.pg_users[self.op_config.super_username]
            self.db = DatabaseClient(host=self.pg_host(), user=superuser.name, password=superuser.password)
        self.db.init_db_conn()

    def close_db_conn(self):
        if self.db is None:
            self.logger.warning("Attempted to close an empty db connection object")
            return
        self.db.close_db_conn()

    def sync_roles_and_databases(self):
        try:
            self.init_db_conn()
        except DatabaseError as e:
            raise ClusterError(f"Can't init db connection: {e}") from e

        try:
            try:
                self.create_users()
            except DatabaseError as e:
                raise ClusterError(f"Can't create users: {e}") from e
            try:
                self.create_databases()
            except DatabaseError as e:
                raise ClusterError(f"Can't create databases: {e}") from e
        finally:
            self.close_db_conn()

    def create_users(self):
        """Create or alter the declared roles; system roles are left to Spilo"""
        system = set(self.system_user_names())
        users = {name: user for name, user in self.pg_users.items() if name not in system}
        if not users:
            return

        db_users = self.db.read_pg_users_from_database(list(users))
        requests = produce_sync_requests(db_users, users)
        self.db.execute_sync_requests(requests)

    def create_databases(self):
        """
        Create the declared databases missing from the cluster

        Databases whose owner is unknown or whose name is not alphanumeric
        are skipped.
        """
        desired = self.spec.databases
        if not desired:
            return

        current = self.db.get_databases()
        for datname, owner in sorted(desired.items()):
            if datname in current:
                continue
            if owner not in self.pg_users:
                self.logger.info(f"Skipping creation of the {datname!r} database, user {owner!r} does not exist")
                continue
            if not is_valid_name(datname):
                self.logger.info(f"Database {datname!r} has invalid name")
                continue
            if not is_valid_name(owner):
                self.logger.info(f"Skipping creation of the {datname!r} database, owner {owner!r} has invalid name")
                continue

            self.logger.info(f"Creating database {datname!r} with owner {owner!r}")
            self.db.create_database(datname, owner)

    # ========================================================================
    # KUBERNETES OBJECTS
    # ========================================================================

    def create_endpoint(self):
        endpoint = gen_endpoint(self._cluster_name, self.op_config)
        self.resources.endpoint = self.kube.core.create_namespaced_endpoints(self.namespace, endpoint)
        return self.resources.endpoint

    def create_service(self):
        service = gen_service(self._cluster_name, self.team_name(), self.spec.allowed_source_ranges,
                              self.op_config)
        self.resources.service = self.kube.core.create_namespaced_service(self.namespace, service)
        return self.resources.service

    def update_service(self, new_service):
        if self.resources.service is None:
            raise ClusterError("There is no Service in the cluster")
        body = {"spec": {"loadBalancerSourceRanges": new_service.spec.load_balancer_source_ranges}}
        self.resources.service = self.kube.core.patch_namespaced_service(
            self.resources.service.metadata.name, self.namespace, body)

    def create_statefulset(self):
        statefulset = gen_statefulset(self._cluster_name, self.spec, self.op_config)
        self.resources.statefulset = self.kube.apps.create_namespaced_stateful_set(self.namespace, statefulset)
        return self.resources.statefulset

    def update_statefulset(self, new_statefulset):
        if self.resources.statefulset is None:
            raise ClusterError("There is no StatefulSet in the cluster")
        self.resources.statefulset = self.kube.apps.patch_namespaced_stateful_set(
            self.resources.statefulset.metadata.name, self.namespace, new_statefulset)

    def delete_endpoint(self) -> str:
        if self.resources.endpoint is None:
            raise ClusterError("There is no Endpoint in the cluster")
        name = name_from_meta(self.resources.endpoint.metadata)
        self.kube.core.delete_namespaced_endpoints(self.resources.endpoint.metadata.name, self.namespace)
        self.resources.endpoint = None
        return name

    def delete_service(self) -> str:
        if self.resources.service is None:
            raise ClusterError("There is no Service in the cluster")
        name = name_from_meta(self.resources.service.metadata)
        self.kube.core.delete_namespaced_service(self.resources.service.metadata.name, self.namespace)
        self.resources.service = None
        return name

    def delete_statefulset(self) -> str:
        """Delete the StatefulSet, leaving its pods to delete_pods"""
        if self.resources.statefulset is None:
            raise ClusterError("There is no StatefulSet in the cluster")
        name = name_from_meta(self.resources.statefulset.metadata)
        self.kube.apps.delete_namespaced_stateful_set(
            self.resources.statefulset.metadata.name, self.namespace,
            body=client.V1DeleteOptions(propagation_policy="Orphan"))
        self.resources.statefulset = None
        return name

    def delete_secret(self, uid, secret):
        self.kube.core.delete_namespaced_secret(secret.metadata.name, self.namespace)
        del self.resources.secrets[uid]

    def delete_persistent_volume_claims(self):
        claims = self.kube.core.list_namespaced_persistent_volume_claim(
            self.namespace, label_selector=label_selector(self.labels()))
        for claim in claims.items:
            self.kube.core.delete_namespaced_persistent_volume_claim(claim.metadata.name, self.namespace)
            self.logger.info(f"PersistentVolumeClaim {name_from_meta(claim.metadata)} has been deleted")

    def list_pods(self) -> list:
        return self.kube.core.list_namespaced_pod(
            self.namespace, label_selector=label_selector(self.labels())).items

    def list_resources(self):
        self.logger.info(f"{WHITE}Resources of cluster {self._cluster_name}:{RESET}")
        if self.resources.endpoint is not None:
            self.logger.info(f"  • Endpoint: {name_from_meta(self.resources.endpoint.metadata)}")
        if self.resources.service is not None:
            self.logger.info(f"  • Service: {name_from_meta(self.resources.service.metadata)}")
        for uid, secret in self.resources.secrets.items():
            self.logger.info(f"  • Secret: {name_from_meta(secret.metadata)} (uid: {uid})")
        if self.resources.statefulset is not None:
            self.logger.info(f"  • StatefulSet: {name_from_meta(self.resources.statefulset.metadata)}")

    # ========================================================================
    # PODS
    # ========================================================================

    def wait_statefulset_pods_ready(self):
        """
        Poll until every pod of the StatefulSet is ready and a master is elected

        Raises:
            ReadyTimeoutError: The pods were not ready within resource_check_timeout
        """
        replicas = self.resources.statefulset.spec.replicas

        def pods_ready():
            pods = self.list_pods()
            if len(pods) != replicas or not all(pod_is_ready(pod) for pod in pods):
                return False
            return any(pod_role(pod, self.op_config.pod_role_label) == constants.POD_ROLE_MASTER
                       for pod in pods)

        retry(self.op_config.resource_check_interval, self.op_config.resource_check_timeout, pods_ready,
              f"{replicas} ready pods of cluster {self._cluster_name}")

    def wait_for_pod_event(self, channel: "queue.Queue[PodEvent]", pod_name: PodName,
                           predicate: Callable[[PodEvent], bool], timeout: float, what: str) -> PodEvent:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadyTimeoutError(f"Timeout waiting for pod {pod_name} {what}")
            try:
                event = channel.get(timeout=remaining)
            except queue.Empty:
                continue
            if predicate(event):
                return event

    def delete_pod(self, pod):
        pod_name = PodName(namespace=pod.metadata.namespace, name=pod.metadata.name)
        channel = self.dispatcher.subscribe(pod_name)
        try:
            self.kube.core.delete_namespaced_pod(pod_name.name, pod_name.namespace)
            self.wait_for_pod_event(channel, pod_name, lambda e: e.event_type == PodEventType.DELETE,
                                    self.op_config.pod_deletion_wait_timeout, "deletion")
        finally:
            self.dispatcher.unsubscribe(pod_name)
        self.logger.info(f"Pod {pod_name} has been deleted")

    def recreate_pod(self, pod):
        """Delete a pod and wait until the StatefulSet brings it back ready"""
        pod_name = PodName(namespace=pod.metadata.namespace, name=pod.metadata.name)
        channel = self.dispatcher.subscribe(pod_name)
        try:
            self.kube.core.delete_namespaced_pod(pod_name.name, pod_name.namespace)
            self.wait_for_pod_event(channel, pod_name, lambda e: e.event_type == PodEventType.DELETE,
                                    self.op_config.pod_deletion_wait_timeout, "deletion")
            self.wait_for_pod_event(channel, pod_name,
                                    lambda e: e.event_type != PodEventType.DELETE and pod_is_ready(e.cur_pod),
                                    self.op_config.pod_label_wait_timeout, "readiness")
        finally:
            self.dispatcher.unsubscribe(pod_name)
        self.logger.info(f"Pod {pod_name} has been recreated")

    def delete_pods(self):
        for pod in self.list_pods():
            self.delete_pod(pod)

    def recreate_pods(self):
        """Recreate every pod of the cluster, replicas first and the master last"""
        master = None
        for pod in self.list_pods():
            if pod_role(pod, self.op_config.pod_role_label) == constants.POD_ROLE_MASTER:
                master = pod
                continue
            self.recreate_pod(pod)

        if master is not None:
            self.recreate_pod(master)
