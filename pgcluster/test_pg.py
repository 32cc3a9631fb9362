"""Tests for the PostgreSQL access of a cluster"""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from pgcluster import constants
from pgcluster.errors import DatabaseError
from pgcluster.pg import DatabaseClient
from pgcluster.spec import PgUser
from pgcluster.users import PgSyncUserRequest, SyncRequestKind, md5_password


def _client():
    return DatabaseClient(host="acid-test.default.svc.cluster.local", user="postgres", password="secret")


def test_init_db_conn_is_cached():
    print("🧪 Testing DatabaseClient connection...")

    with patch("pgcluster.pg.psycopg2.connect") as connect:
        db = _client()
        db.init_db_conn()
        db.init_db_conn()

        connect.assert_called_once()
        kwargs = connect.call_args[1]
        assert kwargs["dbname"] == "postgres", "Should connect to the administrative database"
        assert kwargs["sslmode"] == "require", "Should require an encrypted channel"
        assert db.conn is connect.return_value

    print("✅ DatabaseClient connection tests passed!")


def test_init_db_conn_probe_failure():
    with patch("pgcluster.pg.psycopg2.connect") as connect:
        conn = connect.return_value
        conn.cursor.return_value.__enter__.return_value.execute.side_effect = psycopg2.OperationalError("down")

        db = _client()
        with pytest.raises(DatabaseError):
            db.init_db_conn()

        conn.close.assert_called_once()
        assert db.conn is None, "Failed connection should be discarded"


def test_init_db_conn_connect_failure():
    with patch("pgcluster.pg.psycopg2.connect", side_effect=psycopg2.OperationalError("refused")):
        db = _client()
        with pytest.raises(DatabaseError):
            db.init_db_conn()
        assert db.conn is None


def test_close_db_conn_is_idempotent():
    db = _client()
    conn = MagicMock()
    conn.close.side_effect = psycopg2.InterfaceError("already closed")
    db.conn = conn

    db.close_db_conn()
    db.close_db_conn()

    conn.close.assert_called_once()
    assert db.conn is None


def test_read_pg_users_from_database():
    db = _client()
    db.conn = MagicMock()
    cursor = db.conn.cursor.return_value
    cursor.fetchall.return_value = [
        ("robot", "md5" + "a" * 32, False, True, False, True, True, ["admin"]),
        ("human", "", False, True, False, False, True, None),
    ]

    users = db.read_pg_users_from_database(["robot", "human"])

    cursor.execute.assert_called_once_with(constants.GET_USERS_SQL, (["robot", "human"],))
    cursor.close.assert_called_once()
    assert users["robot"] == PgUser(name="robot", password="md5" + "a" * 32,
                                    flags=["INHERIT", "CREATEDB", "LOGIN"], member_of=["admin"])
    assert users["human"].flags == ["INHERIT", "LOGIN"]
    assert users["human"].member_of == []


def test_query_error_wins_over_cursor_close_error():
    db = _client()
    db.conn = MagicMock()
    cursor = db.conn.cursor.return_value
    cursor.execute.side_effect = psycopg2.ProgrammingError("syntax")
    cursor.close.side_effect = psycopg2.InterfaceError("cursor gone")

    with pytest.raises(DatabaseError, match="querying"):
        db.get_databases()


def test_cursor_close_error_alone_is_reported():
    db = _client()
    db.conn = MagicMock()
    cursor = db.conn.cursor.return_value
    cursor.fetchall.return_value = [("postgres", "postgres")]
    cursor.close.side_effect = psycopg2.InterfaceError("cursor gone")

    with pytest.raises(DatabaseError, match="closing query cursor"):
        db.get_databases()


def test_query_without_connection():
    with pytest.raises(DatabaseError):
        _client().get_databases()


def test_get_databases():
    db = _client()
    db.conn = MagicMock()
    db.conn.cursor.return_value.fetchall.return_value = [("postgres", "postgres"), ("app", "owner1")]

    assert db.get_databases() == {"postgres": "postgres", "app": "owner1"}


def test_create_database_rejects_invalid_names():
    db = _client()
    db.conn = MagicMock()

    for datname, owner in [("bad-name", "owner1"), ("app", "owner;drop"), ("1app", "owner1")]:
        with pytest.raises(ValueError):
            db.create_database(datname, owner)

    db.conn.cursor.assert_not_called()


def test_create_database():
    db = _client()
    db.conn = MagicMock()

    db.create_database("app", "owner1")

    db.conn.cursor.return_value.execute.assert_called_once()


def test_execute_sync_requests():
    db = _client()
    db.conn = MagicMock()
    cursor = db.conn.cursor.return_value

    db.execute_sync_requests([
        PgSyncUserRequest(SyncRequestKind.CREATE, PgUser(name="robot", password="pw", flags=["LOGIN"])),
        PgSyncUserRequest(SyncRequestKind.ALTER, PgUser(name="human", member_of=["zalandos"])),
    ])

    calls = cursor.execute.call_args_list
    assert len(calls) == 2, "One CREATE ROLE and one GRANT expected"
    assert calls[0][0][1] == [md5_password("robot", "pw")], "Password should be sent as md5 digest"
    assert calls[1][0][1] is None
