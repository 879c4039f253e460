"""
Paged search, attribute discovery and bind authentication against one
directory server.

:py:class:`LdapUtility` is the entry point.  Each of its operations opens its
own connection, does its work and unbinds before returning, so one instance
can be shared freely between threads.
"""

import logging
from collections.abc import Iterator
from typing import Any

from ldap.controls import SimplePagedResultsControl

from ldaputility import ldap

from .codegen import SimpleClassGenerator
from .constants import LIMIT_RESULTS_DEFAULT, LOGGER_NAME, PAGE_SIZE_DEFAULT
from .endpoint import DirectoryEndpoint
from .exceptions import AuthenticationError, DirectoryConnectionError, SearchError
from .mapper import AttributeMapper
from .models import Credential, DirectoryEntry, SearchRequest, SearchScope
from .options import RecordShape


class LdapUtility:
    """
    Search and authenticate against the directory server described by
    ``url``.

    Example:
        .. code-block:: python

            @dataclass
            class Person:
                cn: str | None = None
                sn: str | None = None
                mail: str | None = None

            utility = LdapUtility("ldap://ldap.example.com:389", use_ssl=False)
            people = utility.search("dc=example,dc=com", "(sn=Doe)", Person)

    Args:
        url: an LDAP URI or a bare ``host[:port]``; see
            :py:class:`~ldaputility.endpoint.DirectoryEndpoint`

    Keyword Args:
        use_ssl: encrypt the connection (LDAPS or StartTLS)
        endpoint: a ready-made endpoint; use this instead of ``url``
        logger: the logger to report on; defaults to the package logger
        **endpoint_options: any other
            :py:class:`~ldaputility.endpoint.DirectoryEndpoint` field, e.g.
            ``bind_dn``, ``password``, ``timeout`` or ``tls_verify``

    Raises:
        ValueError: neither ``url`` nor ``endpoint`` was given

    """

    def __init__(
        self,
        url: str | None = None,
        use_ssl: bool = True,
        endpoint: DirectoryEndpoint | None = None,
        logger: logging.Logger | None = None,
        **endpoint_options: Any,
    ) -> None:
        if endpoint is None:
            if not url:
                msg = "LdapUtility needs either a url or an endpoint"
                raise ValueError(msg)
            endpoint = DirectoryEndpoint(url, use_ssl=use_ssl, **endpoint_options)
        self.endpoint = endpoint
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.mapper = AttributeMapper(logger=self.logger)
        self.generator = SimpleClassGenerator()

    @classmethod
    def from_settings(
        cls, server: str = "default", logger: logging.Logger | None = None
    ) -> "LdapUtility":
        """
        Build an :py:class:`LdapUtility` from ``settings.LDAP_SERVERS[server]``.

        Raises:
            django.core.exceptions.ImproperlyConfigured: the server is not
                configured properly

        """
        return cls(endpoint=DirectoryEndpoint.from_settings(server), logger=logger)

    def __repr__(self) -> str:
        return f"LdapUtility({self.endpoint!r})"

    # -----------------------
    # Paging
    # -----------------------

    def _get_pctrls(self, serverctrls):
        """
        Return the paged results controls among the controls the server sent
        back with a page.
        """
        return [
            c
            for c in serverctrls or []
            if c.controlType == SimplePagedResultsControl.controlType
        ]

    def _paged_search(
        self,
        connection: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
        request: SearchRequest,
        attrlist: list[str] | None,
    ) -> Iterator[DirectoryEntry]:
        """
        Yield the entries matching ``request``, page by page, in the order the
        server sends them.

        At most ``request.limit`` entries are yielded.  Once that many have
        been yielded the rest of the current page is dropped and no further
        page is requested, even if the server has more.

        Args:
            connection: a bound connection
            request: what to search for
            attrlist: the attributes to request, or ``None`` for all of them

        Raises:
            ldap.LDAPError: a page request failed

        """
        cookie: bytes | str = ""
        count = 0
        page = 0
        while True:
            page += 1
            # New control per page; search_ext() may write into the one it is given
            paging = SimplePagedResultsControl(True, size=request.pagesize, cookie=cookie)  # noqa: FBT003
            self.logger.debug(
                "ldap.search.page basedn=%s filter=%s scope=%s page=%d pagesize=%d",
                request.basedn,
                request.searchfilter,
                request.scope.name,
                page,
                request.pagesize,
            )
            msgid = connection.search_ext(
                request.basedn,
                int(request.scope),
                request.searchfilter,
                attrlist,
                serverctrls=[paging],
            )
            _, rdata, _, serverctrls = connection.result3(msgid)
            for dn, attrs in rdata:
                # AD returns an rdata at the end that is a reference that we
                # want to ignore
                if not isinstance(attrs, dict):
                    continue
                if request.limit_reached(count):
                    break
                yield DirectoryEntry(dn, attrs)
                count += 1
            if request.limit_reached(count):
                self.logger.debug(
                    "ldap.search.limit_reached limit=%d page=%d", request.limit, page
                )
                return
            paged_controls = self._get_pctrls(serverctrls)
            if not paged_controls or not paged_controls[0].cookie:
                # No cookie: that was the last page
                return
            cookie = paged_controls[0].cookie
            self.logger.debug(
                "ldap.search.next_page page=%d count=%d", page + 1, count
            )

    def _run(self, operation: str, request: SearchRequest, consume) -> Any:
        """
        Open a connection, hand ``consume`` the paged entries for ``request``,
        and turn any python-ldap failure into :py:exc:`SearchError`.
        """
        try:
            with self.endpoint.connection(log=self.logger) as conn:
                return consume(conn)
        except (ldap.LDAPError, DirectoryConnectionError) as e:
            self.logger.error(
                "ldap.%s.failed basedn=%s filter=%s error=%s",
                operation,
                request.basedn,
                request.searchfilter,
                e,
            )
            msg = f"LDAP {operation} of {request.basedn} with {request.searchfilter} failed"
            raise SearchError(msg) from e

    # -----------------------
    # Operations
    # -----------------------

    def search(
        self,
        basedn: str,
        searchfilter: str,
        record_class: type,
        limit: int = LIMIT_RESULTS_DEFAULT,
        pagesize: int = PAGE_SIZE_DEFAULT,
        scope: SearchScope | int = SearchScope.SUBTREE,
        attributes: list[str] | None = None,
    ) -> list[Any]:
        """
        Search the directory and map every entry onto a new ``record_class``
        instance.

        Args:
            basedn: the DN to search from
            searchfilter: the LDAP filter; passed to the server as-is
            record_class: the record class; its field names are the
                attributes we request

        Keyword Args:
            limit: return at most this many records; -1 for all of them
            pagesize: how many entries to ask the server for per page
            scope: the search scope
            attributes: request these attributes instead of the record's
                field names

        Raises:
            SearchError: the connection or a page request failed
            ConstructionError: an entry could not be mapped onto
                ``record_class``
            ValueError: ``limit`` or ``pagesize`` is out of range
            OSError: one of the endpoint's TLS files is missing

        Returns:
            The records, in the order the server returned the entries.

        """
        request = SearchRequest(
            basedn,
            searchfilter,
            scope=scope,  # type: ignore[arg-type]
            limit=limit,
            pagesize=pagesize,
            attributes=attributes,  # type: ignore[arg-type]
        )
        return self.search_request(request, record_class)

    def search_request(self, request: SearchRequest, record_class: type) -> list[Any]:
        """
        Like :py:meth:`search`, but with the parameters packed into a
        :py:class:`~ldaputility.models.SearchRequest`.
        """
        shape = RecordShape.for_class(record_class)
        if request.attributes is not None:
            attrlist = list(request.attributes)
        else:
            attrlist = list(shape.attributes)

        def consume(conn):
            return [
                self.mapper.map(entry, shape)
                for entry in self._paged_search(conn, request, attrlist)
            ]

        records = self._run("search", request, consume)
        self.logger.info(
            "ldap.search.success basedn=%s filter=%s record=%s count=%d",
            request.basedn,
            request.searchfilter,
            shape.object_name,
            len(records),
        )
        return records

    def get_distinct_attributes(
        self,
        basedn: str,
        searchfilter: str,
        limit: int = LIMIT_RESULTS_DEFAULT,
        pagesize: int = PAGE_SIZE_DEFAULT,
        scope: SearchScope | int = SearchScope.SUBTREE,
    ) -> list[str]:
        """
        Return the names of all the attributes that appear on any entry
        matching ``searchfilter``.

        Paging and ``limit`` behave exactly as in :py:meth:`search`; every
        attribute is requested.

        Args:
            basedn: the DN to search from
            searchfilter: the LDAP filter; passed to the server as-is

        Keyword Args:
            limit: look at no more than this many entries; -1 for all of them
            pagesize: how many entries to ask the server for per page
            scope: the search scope

        Raises:
            SearchError: the connection or a page request failed
            OSError: one of the endpoint's TLS files is missing

        Returns:
            The distinct attribute names, sorted case-insensitively.

        """
        request = SearchRequest(
            basedn, searchfilter, scope=scope, limit=limit, pagesize=pagesize  # type: ignore[arg-type]
        )

        def consume(conn):
            names: set[str] = set()
            for entry in self._paged_search(conn, request, None):
                names.update(entry.attribute_names)
            return names

        names = self._run("discovery", request, consume)
        self.logger.info(
            "ldap.discovery.success basedn=%s filter=%s attributes=%d",
            basedn,
            searchfilter,
            len(names),
        )
        return sorted(names, key=lambda name: (name.lower(), name))

    def generate_class(
        self,
        basedn: str,
        searchfilter: str,
        class_name: str,
        limit: int = LIMIT_RESULTS_DEFAULT,
        pagesize: int = PAGE_SIZE_DEFAULT,
        scope: SearchScope | int = SearchScope.SUBTREE,
    ) -> str:
        """
        Discover the attributes of the entries matching ``searchfilter`` with
        :py:meth:`get_distinct_attributes` and return the source of a Java
        class with a field, getter and setter for each.

        Raises:
            SearchError: the connection or a page request failed
            OSError: one of the endpoint's TLS files is missing

        """
        attributes = self.get_distinct_attributes(
            basedn, searchfilter, limit=limit, pagesize=pagesize, scope=scope
        )
        return self.generator.generate_java_class(attributes, class_name)

    def authentication(
        self,
        basedn: str,
        searchfilter: str,
        credentials: str,
        record_class: type,
    ) -> Any | None:
        """
        Bind as ``basedn`` with password ``credentials``, then search the
        subtree under ``basedn`` with ``searchfilter`` and map the first entry
        found onto ``record_class``.

        Note:
            ``basedn`` is both the identity we bind as and the base of the
            search, so this only makes sense when ``basedn`` is the DN of the
            user themselves.

        Args:
            basedn: the DN to bind as and search under
            searchfilter: the LDAP filter; passed to the server as-is
            credentials: the password for ``basedn``
            record_class: the record class to map the entry onto

        Raises:
            AuthenticationError: ``basedn`` or ``credentials`` is empty, or the
                bind failed (bad credentials, server down, protocol error)
            SearchError: the bind succeeded but the search failed
            ConstructionError: the entry could not be mapped onto
                ``record_class``
            OSError: one of the endpoint's TLS files is missing

        Returns:
            The record, or ``None`` if the search found nothing.

        """
        shape = RecordShape.for_class(record_class)
        if not basedn or not credentials:
            # A simple bind with an empty DN or password is an unauthenticated bind
            self.logger.error(
                "ldap.authentication.failed principal=%s: empty DN or password",
                basedn,
            )
            msg = f"Authentication failed for {basedn}: a DN and a password are required"
            raise AuthenticationError(msg)
        credential = Credential(basedn, credentials)
        try:
            with self.endpoint.connection(credential, log=self.logger) as conn:
                try:
                    msgid = conn.search_ext(
                        basedn, int(SearchScope.SUBTREE), searchfilter, None
                    )
                    _, rdata, _, _ = conn.result3(msgid)
                except ldap.LDAPError as e:
                    self.logger.error(
                        "ldap.authentication.search.failed basedn=%s filter=%s error=%s",
                        basedn,
                        searchfilter,
                        e,
                    )
                    msg = f"LDAP search of {basedn} with {searchfilter} failed"
                    raise SearchError(msg) from e
        except DirectoryConnectionError as e:
            self.logger.error("ldap.authentication.failed principal=%s", basedn)
            msg = f"Authentication failed for {basedn}"
            raise AuthenticationError(msg) from e
        entries = [(dn, attrs) for dn, attrs in rdata if isinstance(attrs, dict)]
        if not entries:
            self.logger.error(
                "ldap.authentication.not_found basedn=%s filter=%s: "
                "valid object not found",
                basedn,
                searchfilter,
            )
            return None
        self.logger.info("ldap.authentication.success principal=%s", basedn)
        return self.mapper.map(DirectoryEntry(*entries[0]), shape)
