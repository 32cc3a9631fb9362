"""Exceptions raised by the cluster reconciliation engine"""


class ClusterError(Exception):
    """A lifecycle phase of a cluster failed"""


class InvalidUserError(ClusterError):
    """A declared role name is not acceptable"""


class InvalidFlagError(ClusterError):
    """A declared role flag is unknown or contradictory"""


class DatabaseError(ClusterError):
    """The database engine refused a connection or a query"""


class ReadyTimeoutError(ClusterError):
    """A bounded wait expired before the condition was met"""


class TeamsAPIError(ClusterError):
    """The team membership lookup failed"""


class ConfigError(Exception):
    """The operator configuration is invalid"""
