"""
Logging setup for the cluster reconciliation engine

Structured single-line logs on stdout, plus an adapter that tags every
record with the cluster it belongs to.
"""

import sys
import logging

# ANSI color codes
BLUE = "\033[94m"
RED = "\033[91m"
WHITE = "\033[97m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RESET = "\033[0m"

LOG_FORMAT = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'


def configure_logging(debug: bool = False):
    """
    Configure structured logging for the whole process

    Args:
        debug: Log at DEBUG level instead of INFO
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


class ClusterLogger(logging.LoggerAdapter):
    """Prefixes messages with the namespaced cluster name"""

    def process(self, msg, kwargs):
        return f"[{self.extra['cluster_name']}] {msg}", kwargs


def cluster_logger(cluster_name) -> ClusterLogger:
    return ClusterLogger(logging.getLogger("postgres-operator.cluster"),
                         {"cluster_name": str(cluster_name)})
