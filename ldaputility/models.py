"""
Value objects passed between the endpoint, the paged search loop and the
attribute mapper.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from ldaputility import ldap

from .constants import (
    LIMIT_RESULTS_DEFAULT,
    NO_LIMIT,
    PAGE_SIZE_DEFAULT,
    SECURITY_AUTHENTICATION_NONE,
    SECURITY_AUTHENTICATION_SIMPLE,
)
from .typing import LDAPAttributes, LDAPData


class SearchScope(IntEnum):
    """
    How far a search descends from its base entry.  The members are the
    python-ldap scope integers, so they can be handed straight to
    ``search_ext()``.
    """

    #: Only the base entry itself.
    BASE = ldap.SCOPE_BASE  # type: ignore[attr-defined]
    #: Only the immediate children of the base entry.
    ONELEVEL = ldap.SCOPE_ONELEVEL  # type: ignore[attr-defined]
    #: The base entry and all of its descendants.
    SUBTREE = ldap.SCOPE_SUBTREE  # type: ignore[attr-defined]


@dataclass(frozen=True)
class Credential:
    """
    A bind identity.  ``secret`` is left out of ``repr()`` so that a
    credential can never end up in a log line by accident.
    """

    principal: str | None = None
    secret: str | None = field(default=None, repr=False)

    @property
    def anonymous(self) -> bool:
        return not self.principal

    @property
    def mechanism(self) -> str:
        """
        The bind mechanism this credential calls for: ``"none"`` for an
        anonymous bind, ``"simple"`` otherwise.
        """
        if self.anonymous:
            return SECURITY_AUTHENTICATION_NONE
        return SECURITY_AUTHENTICATION_SIMPLE


@dataclass(frozen=True)
class SearchRequest:
    """
    The parameters of one paged search.

    Args:
        basedn: the DN to search from
        searchfilter: an LDAP filter string; passed to the server verbatim

    Keyword Args:
        scope: the search scope
        limit: the maximum number of entries to return, or
            :py:data:`~ldaputility.constants.NO_LIMIT`
        pagesize: the number of entries to ask for per page
        attributes: the attributes to request.  ``None`` means "let the
            operation decide": the record's fields for a mapped search, every
            attribute for attribute discovery.

    Raises:
        ValueError: ``pagesize`` is not positive or ``limit`` is below -1

    """

    basedn: str
    searchfilter: str
    scope: SearchScope = SearchScope.SUBTREE
    limit: int = LIMIT_RESULTS_DEFAULT
    pagesize: int = PAGE_SIZE_DEFAULT
    attributes: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.pagesize < 1:
            msg = f"pagesize must be a positive integer, got {self.pagesize}"
            raise ValueError(msg)
        if self.limit < NO_LIMIT:
            msg = f"limit must be -1 (no limit) or greater, got {self.limit}"
            raise ValueError(msg)
        # Accept raw python-ldap scope integers as well as SearchScope members
        object.__setattr__(self, "scope", SearchScope(self.scope))
        if self.attributes is not None:
            object.__setattr__(self, "attributes", tuple(self.attributes))

    def limit_reached(self, count: int) -> bool:
        """
        Return ``True`` if ``count`` entries have used up our result cap.
        """
        return self.limit != NO_LIMIT and count >= self.limit


class DirectoryEntry:
    """
    One entry from a search result.

    The attribute dictionary is kept exactly as python-ldap returned it.
    Lookups through :py:meth:`value` ignore case, since LDAP attribute names
    are case-insensitive and servers do not always echo back the case we asked
    for.

    Args:
        dn: the distinguished name of the entry
        attributes: the attribute dictionary from python-ldap

    """

    def __init__(self, dn: str, attributes: LDAPAttributes) -> None:
        self.dn = dn
        self.attributes = attributes
        self._lookup = {name.lower(): name for name in attributes}

    @classmethod
    def from_ldap(cls, data: LDAPData) -> "DirectoryEntry":
        return cls(data[0], data[1])

    @property
    def attribute_names(self) -> list[str]:
        """
        The names of the attributes on this entry, as the server spelled them.
        """
        return list(self.attributes)

    def value(self, name: str) -> str | None:
        """
        Return the first value of attribute ``name`` as a string.

        Multi-valued attributes yield only their first value.

        Args:
            name: the attribute name, in any case

        Raises:
            UnicodeDecodeError: the value is not valid UTF-8

        Returns:
            The value, or ``None`` if the entry has no such attribute.

        """
        key = self._lookup.get(name.lower())
        if key is None:
            return None
        values = self.attributes[key]
        if not values:
            return None
        value = values[0]
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def __repr__(self) -> str:
        return f"<DirectoryEntry: {self.dn}>"
