"""
Default values shared by the search, discovery and authentication operations.
"""

#: Default number of entries requested per page of a paged search.
PAGE_SIZE_DEFAULT: int = 1000

#: Default cap on the total number of entries returned by a search.
LIMIT_RESULTS_DEFAULT: int = 1000

#: Pass this as ``limit`` to return every entry the server has.
NO_LIMIT: int = -1

#: Anonymous bind: used for searches when no service identity is configured.
SECURITY_AUTHENTICATION_NONE: str = "none"

#: Simple (DN + password) bind.
SECURITY_AUTHENTICATION_SIMPLE: str = "simple"

#: Network timeout, in seconds, when none is configured.
TIMEOUT_DEFAULT: float = 15.0

#: Name of the logger used when a component is not handed one.
LOGGER_NAME: str = "ldap-utility"
