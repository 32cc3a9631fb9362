"""Tests for credential generation, name validation and polling helpers"""

import pytest
from kubernetes import client

from pgcluster.errors import ReadyTimeoutError
from pgcluster.util import is_valid_name, pod_is_ready, pod_role, random_password, retry


def test_valid_names():
    """Names starting with a letter followed by letters and digits are accepted"""
    for name in ["a", "app", "App1", "robot2go", "Z9z9"]:
        assert is_valid_name(name), f"{name!r} should be valid"


def test_invalid_names():
    for name in ["", "1app", "bad-name", "bad_name", "bad name", " app", "app!", None]:
        assert not is_valid_name(name), f"{name!r} should be invalid"


def test_random_password():
    print("🧪 Testing random_password...")

    password = random_password(64)
    assert len(password) == 64, "Password should have the requested length"
    assert password.isalnum(), "Password should be alphanumeric"
    assert random_password(64) != password, "Passwords should differ"

    print("✅ random_password tests passed!")


def test_retry_returns_once_condition_holds():
    attempts = []

    def condition():
        attempts.append(1)
        return len(attempts) == 3

    retry(0.01, 1, condition)
    assert len(attempts) == 3


def test_retry_times_out():
    with pytest.raises(ReadyTimeoutError):
        retry(0.01, 0.05, lambda: False, "nothing")


def _pod(ready, role=None):
    labels = {"spilo-role": role} if role else None
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name="acid-test-0", namespace="default", labels=labels),
        status=client.V1PodStatus(conditions=[
            client.V1PodCondition(type="Ready", status="True" if ready else "False"),
        ]),
    )


def test_pod_helpers():
    assert pod_is_ready(_pod(True))
    assert not pod_is_ready(_pod(False))
    assert not pod_is_ready(client.V1Pod(status=client.V1PodStatus()))
    assert pod_role(_pod(True, "master"), "spilo-role") == "master"
    assert pod_role(_pod(True), "spilo-role") is None
