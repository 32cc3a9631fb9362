"""Tests for the logging setup"""

import logging

from pgcluster.log import LOG_FORMAT, cluster_logger, configure_logging
from pgcluster.spec import ClusterName


def test_configure_logging():
    configure_logging(debug=True)
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert root.handlers[0].formatter._fmt == LOG_FORMAT

    configure_logging()
    assert logging.getLogger().level == logging.INFO


def test_cluster_logger_prefix(caplog):
    logger = cluster_logger(ClusterName(namespace="default", name="acid-test"))

    with caplog.at_level(logging.INFO, logger="postgres-operator.cluster"):
        logger.info("Cluster has been created")

    assert "[default/acid-test] Cluster has been created" in caplog.messages
