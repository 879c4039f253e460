"""
Exceptions raised by ldaputility.

Every exception raised on behalf of a python-ldap failure is chained to the
underlying :py:class:`ldap.LDAPError`, so ``exc.__cause__`` carries the server's
result code and diagnostic message.
"""


class LdapUtilityError(Exception):
    """Base class for all errors raised by this package."""


class DirectoryConnectionError(LdapUtilityError):
    """
    The directory endpoint could not be reached, the protocol negotiation
    (e.g. StartTLS) failed, or the bind was rejected.
    """


class AuthenticationError(DirectoryConnectionError):
    """
    Raised by :py:meth:`~ldaputility.utility.LdapUtility.authentication` when
    the bind with the caller's DN and password fails.

    A bind that succeeds but whose search finds nothing is not an error; that
    returns ``None``.
    """


class SearchError(LdapUtilityError):
    """
    A search could not be completed: the connection failed or one of the
    page requests failed.  Entries gathered before the failure are discarded.
    """


class ConstructionError(LdapUtilityError):
    """
    A record class could not be instantiated with no arguments, or one of its
    fields could not be assigned.
    """
