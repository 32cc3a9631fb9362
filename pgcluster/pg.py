"""
PostgreSQL access for one cluster

A DatabaseClient owns a single, non-pooled connection to the administrative
database of the cluster. It is opened lazily and closed explicitly; callers
serialize their use of it.
"""

import logging
from typing import Dict, Iterable, List, Optional

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from pgcluster import constants
from pgcluster.errors import DatabaseError
from pgcluster.spec import PgUser
from pgcluster.users import PgSyncUserRequest, SyncRequestKind, make_user_flags, md5_password, role_options
from pgcluster.util import is_valid_name

logger = logging.getLogger("postgres-operator.pg")


class DatabaseClient:
    """Handles all PostgreSQL interactions of a cluster"""

    def __init__(self, host: str, user: str, password: str, dbname: str = constants.DEFAULT_PG_DATABASE,
                 port: int = constants.POSTGRES_PORT, sslmode: str = "require", connect_timeout: int = 10):
        self.host = host
        self.port = port
        self.dbname = dbname
        self.user = user
        self.password = password
        self.sslmode = sslmode
        self.connect_timeout = connect_timeout
        self.conn = None

    # ------------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------------

    def init_db_conn(self):
        """
        Open the connection unless one is already cached

        The new connection is probed with a round trip and discarded if the
        probe fails.

        Raises:
            DatabaseError: The connection could not be opened or probed
        """
        if self.conn is not None:
            return

        try:
            conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                dbname=self.dbname,
                user=self.user,
                password=self.password,
                sslmode=self.sslmode,
                connect_timeout=self.connect_timeout,
            )
        except psycopg2.Error as e:
            raise DatabaseError(f"Can't connect to {self.host}: {e}") from e
        logger.debug(f"New database connection to {self.host}")

        try:
            conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
        except psycopg2.Error as e:
            try:
                conn.close()
            except psycopg2.Error as close_error:
                logger.error(f"Error closing PostgreSQL connection after another error: {close_error}")
            raise DatabaseError(f"Database at {self.host} is not responding: {e}") from e

        self.conn = conn

    def close_db_conn(self):
        """Close the connection; closing an absent connection only logs"""
        if self.conn is None:
            logger.warning("Attempted to close an empty db connection object")
            return

        logger.debug(f"Closing database connection to {self.host}")
        try:
            self.conn.close()
        except psycopg2.Error as e:
            logger.error(f"Could not close database connection: {e}")
        finally:
            self.conn = None

    def _run(self, query, params=None, fetch: bool = False) -> Optional[List[tuple]]:
        if self.conn is None:
            raise DatabaseError("No database connection")

        cur = self.conn.cursor()
        failed = False
        try:
            cur.execute(query, params)
            return cur.fetchall() if fetch else None
        except psycopg2.Error as e:
            failed = True
            raise DatabaseError(f"Error when querying database: {e}") from e
        finally:
            try:
                cur.close()
            except psycopg2.Error as e:
                if not failed:
                    raise DatabaseError(f"Error when closing query cursor: {e}") from e
                logger.error(f"Error when closing query cursor: {e}")

    # ------------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------------

    def read_pg_users_from_database(self, names: Iterable[str]) -> Dict[str, PgUser]:
        """
        Read the given roles from the catalog

        Passwords are returned as stored, which is assumed to be an md5 digest.

        Args:
            names: Role names to look up

        Returns:
            Dictionary mapping role name to PgUser, for roles that exist
        """
        rows = self._run(constants.GET_USERS_SQL, (list(names),), fetch=True)
        users = {}
        for rolname, rolpassword, rolsuper, rolinherit, rolcreaterole, rolcreatedb, rolcanlogin, memberof in rows:
            users[rolname] = PgUser(
                name=rolname,
                password=rolpassword,
                flags=make_user_flags(rolsuper, rolinherit, rolcreaterole, rolcreatedb, rolcanlogin),
                member_of=list(memberof or []),
            )
        return users

    def execute_sync_requests(self, requests: List[PgSyncUserRequest]):
        for request in requests:
            if request.kind == SyncRequestKind.CREATE:
                self.create_role(request.user)
            else:
                self.alter_role(request.user, request.update_flags)

    def create_role(self, user: PgUser):
        """Create a role with all of its flags, password and memberships"""
        parts = [sql.SQL("CREATE ROLE {}").format(sql.Identifier(user.name)),
                 sql.SQL(" ".join(role_options(user.flags)))]
        params = []
        if user.password:
            parts.append(sql.SQL("ENCRYPTED PASSWORD %s"))
            params.append(md5_password(user.name, user.password))
        if user.member_of:
            parts.append(sql.SQL("IN ROLE {}").format(
                sql.SQL(", ").join(sql.Identifier(group) for group in user.member_of)))

        self._run(sql.SQL(" ").join(parts), params or None)
        logger.info(f"Created role {user.name}")

    def alter_role(self, user: PgUser, update_flags: bool):
        """Apply the changed attributes of a role and grant missing memberships"""
        options = []
        params = []
        if update_flags:
            options.append(sql.SQL(" ".join(role_options(user.flags))))
        if user.password:
            options.append(sql.SQL("ENCRYPTED PASSWORD %s"))
            params.append(md5_password(user.name, user.password))

        if options:
            statement = sql.SQL("ALTER ROLE {} ").format(sql.Identifier(user.name)) + sql.SQL(" ").join(options)
            self._run(statement, params or None)

        for group in user.member_of:
            self._run(sql.SQL("GRANT {} TO {}").format(sql.Identifier(group), sql.Identifier(user.name)))
            logger.info(f"  ↳ Granted role {group} to {user.name}")

        logger.info(f"Altered role {user.name}")

    # ------------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------------

    def get_databases(self) -> Dict[str, str]:
        """
        Fetch all databases with their owners

        Returns:
            Dictionary mapping database name to owner role name
        """
        rows = self._run(constants.GET_DATABASES_SQL, fetch=True)
        return {datname: owner for datname, owner in rows}

    def create_database(self, datname: str, owner: str):
        """
        Create a database owned by an existing role

        Raises:
            ValueError: The database or owner name is not alphanumeric
        """
        if not is_valid_name(datname) or not is_valid_name(owner):
            raise ValueError(f"Refusing to create database {datname!r} owned by {owner!r}")

        self._run(sql.SQL("CREATE DATABASE {} OWNER {};").format(sql.Identifier(datname), sql.Identifier(owner)))
