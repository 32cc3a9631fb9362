"""
Role flags and role synchronization strategy

Declared users carry a list of flags such as ["createdb", "login"]. The
database catalog stores the same information as five booleans. This module
converts between the two and decides which CREATE/ALTER ROLE requests bring
the catalog in line with the declared users.
"""

import re
import hashlib
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from pgcluster import constants
from pgcluster.errors import InvalidFlagError
from pgcluster.spec import PgUser

MD5_DIGEST_RE = re.compile(constants.PASSWORD_MD5_PREFIX + r"[0-9a-f]{32}")

ROLE_FLAGS = (
    constants.ROLE_FLAG_SUPERUSER,
    constants.ROLE_FLAG_INHERIT,
    constants.ROLE_FLAG_CREATEROLE,
    constants.ROLE_FLAG_CREATEDB,
    constants.ROLE_FLAG_LOGIN,
)

NEGATED_ROLE_FLAGS = {"NO" + flag: flag for flag in ROLE_FLAGS}


# ============================================================================
# FLAG CODEC
# ============================================================================

def make_user_flags(rolsuper: bool, rolinherit: bool, rolcreaterole: bool,
                    rolcreatedb: bool, rolcanlogin: bool) -> List[str]:
    """Encode the catalog booleans of a role as a list of flags"""
    values = (rolsuper, rolinherit, rolcreaterole, rolcreatedb, rolcanlogin)
    return [flag for flag, value in zip(ROLE_FLAGS, values) if value]


def parse_user_flags(flags: Iterable[str]) -> Tuple[bool, bool, bool, bool, bool]:
    """Decode a list of normalized flags back into the five catalog booleans"""
    present = set(flags)
    return tuple(flag in present for flag in ROLE_FLAGS)


def normalize_user_flags(user_flags: Iterable[str]) -> List[str]:
    """
    Normalize the flags declared for a user

    Flags are upper-cased and deduplicated. LOGIN is implied unless NOLOGIN
    is given. Negated flags only suppress their positive counterpart.

    Args:
        user_flags: Flags as declared in the manifest

    Returns:
        Positive flags in canonical order

    Raises:
        InvalidFlagError: Unknown flag, or a flag together with its negation
    """
    unique = set()
    for flag in user_flags or []:
        if not isinstance(flag, str):
            raise InvalidFlagError(f"user flag {flag!r} is not a string")
        flag = flag.strip().upper()
        if flag not in ROLE_FLAGS and flag not in NEGATED_ROLE_FLAGS:
            raise InvalidFlagError(f"unknown user flag {flag!r}")
        unique.add(flag)

    for negated, flag in NEGATED_ROLE_FLAGS.items():
        if negated in unique and flag in unique:
            raise InvalidFlagError(f"conflicting flags: {flag} and {negated}")

    if constants.ROLE_FLAG_NOLOGIN not in unique:
        unique.add(constants.ROLE_FLAG_LOGIN)

    return [flag for flag in ROLE_FLAGS if flag in unique]


def role_options(flags: Iterable[str]) -> List[str]:
    """Spell out every flag, negating the absent ones, for CREATE/ALTER ROLE"""
    present = set(flags)
    return [flag if flag in present else "NO" + flag for flag in ROLE_FLAGS]


# ============================================================================
# PASSWORDS
# ============================================================================

def md5_password(username: str, password: str) -> str:
    """Legacy md5 digest as stored in pg_authid.rolpassword"""
    if MD5_DIGEST_RE.fullmatch(password):
        return password
    digest = hashlib.md5((password + username).encode()).hexdigest()
    return constants.PASSWORD_MD5_PREFIX + digest


# ============================================================================
# SYNC STRATEGY
# ============================================================================

class SyncRequestKind(str, Enum):
    CREATE = "create"
    ALTER = "alter"


@dataclass
class PgSyncUserRequest:
    kind: SyncRequestKind
    user: PgUser
    update_flags: bool = False


def produce_sync_requests(db_users: Dict[str, PgUser], new_users: Dict[str, PgUser]) -> List[PgSyncUserRequest]:
    """
    Compute the requests that bring the database roles in line with the declared users

    Passwords read from the catalog are assumed to be md5 digests. Role
    memberships are only ever added, never revoked.

    Args:
        db_users: Roles as read from the database, keyed by name
        new_users: Declared roles, keyed by name

    Returns:
        List of CREATE and ALTER requests, sorted by role name
    """
    requests = []
    for name in sorted(new_users):
        new_user = new_users[name]
        db_user = db_users.get(name)

        if db_user is None:
            requests.append(PgSyncUserRequest(SyncRequestKind.CREATE, new_user))
            continue

        change = PgUser(name=name)
        needs_alter = False
        update_flags = False

        if new_user.password and md5_password(name, new_user.password) != db_user.password:
            change.password = new_user.password
            needs_alter = True

        if set(new_user.flags) != set(db_user.flags):
            change.flags = list(new_user.flags)
            update_flags = True
            needs_alter = True

        missing_groups = [g for g in new_user.member_of if g not in db_user.member_of]
        if missing_groups:
            change.member_of = missing_groups
            needs_alter = True

        if needs_alter:
            requests.append(PgSyncUserRequest(SyncRequestKind.ALTER, change, update_flags))

    return requests
