"""Constants shared by the cluster reconciliation engine"""

# Custom resource
CRD_GROUP = "acid.zalan.do"
CRD_VERSION = "v1"
CRD_KIND = "postgresql"
CRD_PLURAL = "postgresqls"

# Spilo container
SPILO_IMAGE = "registry.opensource.zalan.do/acid/spilo-9.6:1.2-p12"
ETCD_HOST = "etcd-client.default.svc.cluster.local:2379"
PG_ROOT = "/home/postgres/pgdata/pgroot"
DATA_VOLUME_NAME = "pgdata"
DATA_VOLUME_PATH = "/home/postgres/pgdata"
POSTGRES_PORT = 5432
PATRONI_PORT = 8008
PATRONI_API_PORT = 8080
DEFAULT_PG_DATABASE = "postgres"

# Credentials
PASSWORD_LENGTH = 64
SUPERUSER_KEY_NAME = "superuser"
REPLICATION_USER_KEY_NAME = "replication"
SECRET_USERNAME_KEY = "username"
SECRET_PASSWORD_KEY = "password"
OAUTH_TOKEN_SECRET_KEY = "read-only-token-secret"
PASSWORD_MD5_PREFIX = "md5"

# Role flags
ROLE_FLAG_SUPERUSER = "SUPERUSER"
ROLE_FLAG_INHERIT = "INHERIT"
ROLE_FLAG_CREATEROLE = "CREATEROLE"
ROLE_FLAG_CREATEDB = "CREATEDB"
ROLE_FLAG_LOGIN = "LOGIN"
ROLE_FLAG_NOLOGIN = "NOLOGIN"

# Pod roles as reported by Patroni
POD_ROLE_MASTER = "master"
POD_ROLE_REPLICA = "replica"

# Queries
GET_USERS_SQL = """
    SELECT a.rolname, COALESCE(a.rolpassword, ''), a.rolsuper, a.rolinherit,
           a.rolcreaterole, a.rolcreatedb, a.rolcanlogin,
           ARRAY(SELECT b.rolname
                 FROM pg_catalog.pg_auth_members m
                 JOIN pg_catalog.pg_authid b ON (m.roleid = b.oid)
                 WHERE m.member = a.oid) AS memberof
    FROM pg_catalog.pg_authid a
    WHERE a.rolname = ANY(%s)
    ORDER BY 1;
"""

GET_DATABASES_SQL = """
    SELECT datname, a.rolname AS owner
    FROM pg_database d
    INNER JOIN pg_authid a ON a.oid = d.datdba;
"""
