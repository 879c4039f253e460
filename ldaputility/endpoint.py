"""
Connection descriptor for a directory server.

A :py:class:`DirectoryEndpoint` knows how to turn itself into a configured,
bound python-ldap ``LDAPObject``.  It holds no connection itself: each call to
:py:meth:`DirectoryEndpoint.connect` or :py:meth:`DirectoryEndpoint.connection`
opens a new one that belongs to the caller.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ldaputility import ldap

from .constants import LOGGER_NAME, TIMEOUT_DEFAULT
from .exceptions import DirectoryConnectionError
from .models import Credential

logger = logging.getLogger(LOGGER_NAME)

#: Keys of a ``settings.LDAP_SERVERS`` entry that we understand.
SETTINGS_KEYS = (
    "url",
    "user",
    "password",
    "use_ssl",
    "tls_verify",
    "tls_ca_certfile",
    "tls_certfile",
    "tls_keyfile",
    "timeout",
    "follow_referrals",
)


@dataclass(frozen=True)
class DirectoryEndpoint:
    """
    Where and how to connect to a directory server.

    ``url`` may be a full LDAP URI (``ldap://host:389``, ``ldaps://host:636``)
    or a bare ``host[:port]``.  A bare host gets ``ldaps://`` when ``use_ssl``
    is set and ``ldap://`` otherwise.  An ``ldap://`` URI combined with
    ``use_ssl`` is upgraded to TLS with StartTLS right after connecting.

    ``bind_dn`` and ``password`` are the service identity used for searches;
    leave them unset to search anonymously.  :py:meth:`connect` can be handed
    a different :py:class:`~ldaputility.models.Credential` for a single
    connection, which is how authentication binds as the user.

    Raises:
        ValueError: ``tls_verify`` is not ``"never"`` or ``"always"``

    """

    url: str
    use_ssl: bool = True
    bind_dn: str | None = None
    password: str | None = None
    tls_verify: str = "never"
    tls_ca_certfile: str | None = None
    tls_certfile: str | None = None
    tls_keyfile: str | None = None
    timeout: float = TIMEOUT_DEFAULT
    follow_referrals: bool = False

    def __post_init__(self) -> None:
        if self.tls_verify not in ("never", "always"):
            msg = f"Invalid tls_verify value: {self.tls_verify}"
            raise ValueError(msg)

    def __repr__(self) -> str:
        return f"DirectoryEndpoint(uri={self.uri!r}, use_ssl={self.use_ssl})"

    @classmethod
    def from_settings(cls, server: str = "default") -> "DirectoryEndpoint":
        """
        Build an endpoint from ``settings.LDAP_SERVERS[server]``.

        The entry is a dictionary with at least a ``url`` key; the other keys
        are listed in :py:data:`SETTINGS_KEYS`.  ``user`` and ``password`` are
        the service identity used for searches.

        Example:
            .. code-block:: python

                LDAP_SERVERS = {
                    "default": {
                        "url": "ldaps://ldap.example.com",
                        "user": "cn=reader,dc=example,dc=com",
                        "password": "secret",
                        "tls_verify": "always",
                    }
                }

        Args:
            server: the key into ``settings.LDAP_SERVERS``

        Raises:
            ImproperlyConfigured: the setting, the key or its ``url`` is missing,
                or the entry has keys we don't understand

        """
        try:
            config: dict[str, Any] = settings.LDAP_SERVERS[server]
        except AttributeError as e:
            msg = "settings.LDAP_SERVERS does not exist!"
            raise ImproperlyConfigured(msg) from e
        except KeyError as e:
            msg = f"settings.LDAP_SERVERS has no key '{server}'"
            raise ImproperlyConfigured(msg) from e
        if not config.get("url"):
            msg = f"settings.LDAP_SERVERS['{server}'] has no 'url' key"
            raise ImproperlyConfigured(msg)
        unknown = set(config) - set(SETTINGS_KEYS)
        if unknown:
            msg = "settings.LDAP_SERVERS['{}'] got invalid key(s): {}".format(
                server, ",".join(sorted(unknown))
            )
            raise ImproperlyConfigured(msg)
        kwargs = dict(config)
        kwargs["bind_dn"] = kwargs.pop("user", None)
        try:
            return cls(**kwargs)
        except ValueError as e:
            raise ImproperlyConfigured(str(e)) from e

    @property
    def uri(self) -> str:
        """
        The LDAP URI we hand to ``ldap.initialize()``.
        """
        if "://" in self.url:
            return self.url
        scheme = "ldaps" if self.use_ssl else "ldap"
        return f"{scheme}://{self.url}"

    @property
    def use_starttls(self) -> bool:
        return self.use_ssl and self.uri.lower().startswith("ldap://")

    @property
    def service_credential(self) -> Credential:
        return Credential(self.bind_dn, self.password)

    def _check_file(self, label: str, filename: str) -> None:
        path = Path(filename)
        if not path.exists():
            msg = f"{label} file does not exist: {filename}"
            raise OSError(msg)
        if not path.is_file():
            msg = f"{label} file is not a file: {filename}"
            raise OSError(msg)

    def _configure(self, ldap_object: ldap.ldapobject.LDAPObject) -> None:  # type: ignore[name-defined]
        if self.follow_referrals:
            ldap_object.set_option(ldap.OPT_REFERRALS, 1)  # type: ignore[attr-defined]
        else:
            ldap_object.set_option(ldap.OPT_REFERRALS, 0)  # type: ignore[attr-defined]
        ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, float(self.timeout))  # type: ignore[attr-defined]
        if self.tls_verify == "never":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)  # type: ignore[attr-defined]
        else:
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)  # type: ignore[attr-defined]
        if self.tls_ca_certfile:
            self._check_file("CA Certificate", self.tls_ca_certfile)
            ldap_object.set_option(ldap.OPT_X_TLS_CACERTFILE, self.tls_ca_certfile)  # type: ignore[attr-defined]
        if self.tls_certfile:
            self._check_file("TLS Certificate", self.tls_certfile)
            ldap_object.set_option(ldap.OPT_X_TLS_CERTFILE, self.tls_certfile)  # type: ignore[attr-defined]
        if self.tls_keyfile:
            self._check_file("TLS Key", self.tls_keyfile)
            ldap_object.set_option(ldap.OPT_X_TLS_KEYFILE, self.tls_keyfile)  # type: ignore[attr-defined]
        ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)  # type: ignore[attr-defined]

    def connect(
        self,
        credential: Credential | None = None,
        log: logging.Logger | None = None,
    ) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        Open, configure and bind a new LDAP connection.

        The caller owns the returned object and must ``unbind_s()`` it; see
        :py:meth:`connection` for a context manager that does so.

        Keyword Args:
            credential: who to bind as.  Defaults to our service identity, which
                is an anonymous bind if no ``bind_dn`` is configured.
            log: the logger to report on

        Raises:
            DirectoryConnectionError: the server could not be reached, StartTLS
                failed, or the bind was rejected
            OSError: one of the configured TLS files is missing

        Returns:
            A bound ``LDAPObject``.

        """
        log = log or logger
        if credential is None:
            credential = self.service_credential
        try:
            ldap_object = ldap.initialize(self.uri)
        except ldap.LDAPError as e:
            log.error("ldap.connect.failed uri=%s error=%s", self.uri, e)
            msg = f"Could not initialize a connection to {self.uri}"
            raise DirectoryConnectionError(msg) from e
        try:
            self._configure(ldap_object)
            if self.use_starttls:
                ldap_object.start_tls_s()
            if credential.anonymous:
                ldap_object.simple_bind_s()
            else:
                ldap_object.simple_bind_s(credential.principal, credential.secret)
        except ldap.LDAPError as e:
            log.error(
                "ldap.bind.failed uri=%s principal=%s error=%s",
                self.uri,
                credential.principal or "<anonymous>",
                e,
            )
            release(ldap_object, log)
            msg = f"Could not bind to {self.uri}"
            raise DirectoryConnectionError(msg) from e
        except OSError:
            release(ldap_object, log)
            raise
        log.debug(
            "ldap.connect.success uri=%s mechanism=%s principal=%s",
            self.uri,
            credential.mechanism,
            credential.principal or "<anonymous>",
        )
        return ldap_object

    @contextmanager
    def connection(
        self,
        credential: Credential | None = None,
        log: logging.Logger | None = None,
    ) -> Iterator[ldap.ldapobject.LDAPObject]:  # type: ignore[name-defined]
        """
        Context manager version of :py:meth:`connect`: the connection is
        unbound when the block exits, however it exits.

        Example:
            .. code-block:: python

                with endpoint.connection() as conn:
                    conn.search_s("dc=example,dc=com", ldap.SCOPE_BASE)

        """
        log = log or logger
        ldap_object = self.connect(credential=credential, log=log)
        try:
            yield ldap_object
        finally:
            release(ldap_object, log)


def release(
    ldap_object: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
    log: logging.Logger | None = None,
) -> None:
    """
    Unbind ``ldap_object``, logging and suppressing any failure to do so.
    """
    try:
        ldap_object.unbind_s()
    except ldap.LDAPError as e:
        (log or logger).error("ldap.unbind.failed error=%s", e)
