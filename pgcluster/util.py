"""Small helpers: credentials, name validation, polling and pod inspection"""

import re
import time
import string
import secrets
from typing import Callable, Optional

from pgcluster.errors import ReadyTimeoutError

ALPHA_NUMERIC_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9]*")

PASSWORD_CHARS = string.ascii_letters + string.digits


def random_password(length: int) -> str:
    """Generate a random alphanumeric password of the given length"""
    return "".join(secrets.choice(PASSWORD_CHARS) for _ in range(length))


def is_valid_name(name: str) -> bool:
    """Role and database names start with a letter and contain only letters and digits"""
    return isinstance(name, str) and ALPHA_NUMERIC_RE.fullmatch(name) is not None


def name_from_meta(meta) -> str:
    if meta is None:
        return ""
    return f"{meta.namespace}/{meta.name}"


def retry(interval: float, timeout: float, fn: Callable[[], bool], description: str = "condition"):
    """
    Poll fn until it returns True

    Args:
        interval: Seconds between attempts
        timeout: Seconds after which polling gives up
        fn: Callable returning True once the condition holds; exceptions propagate
        description: Used in the timeout error message

    Raises:
        ReadyTimeoutError: The condition did not hold within the timeout
    """
    deadline = time.monotonic() + timeout
    while True:
        if fn():
            return
        if time.monotonic() + interval > deadline:
            raise ReadyTimeoutError(f"Timeout after {timeout}s waiting for {description}")
        time.sleep(interval)


def pod_is_ready(pod) -> bool:
    """A pod is ready once its Ready condition is True"""
    status = getattr(pod, "status", None)
    if status is None or not status.conditions:
        return False
    for condition in status.conditions:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


def pod_role(pod, role_label: str) -> Optional[str]:
    metadata = getattr(pod, "metadata", None)
    if metadata is None or not metadata.labels:
        return None
    return metadata.labels.get(role_label)
