from __future__ import annotations

from typing import Any, Callable, Protocol

from ldap3 import SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from rozo_warnquota.errors import DirectoryError, ResolutionError
from rozo_warnquota.observability.logging import get_logger
from rozo_warnquota.services.config_service import LdapSettings

log = get_logger(__name__)

ConnectionFactory = Callable[[LdapSettings], Any]


class AddressResolver(Protocol):
    def resolve(self, name: str) -> str: ...


class PlainAddressResolver:
    def resolve(self, name: str) -> str:
        return name


def connect_ldap(settings: LdapSettings) -> Connection:
    server = Server(settings.uri)
    return Connection(
        server,
        user=settings.binddn or None,
        password=settings.bindpw or None,
        auto_bind=True,
        read_only=True,
    )


class LdapAddressResolver:
    def __init__(self, settings: LdapSettings, connect: ConnectionFactory = connect_ldap) -> None:
        self.settings = settings
        self._connect = connect
        self._conn: Any = None
        self._failed = False

    def resolve(self, name: str) -> str:
        conn = self._connection()
        s = self.settings
        search = f"({s.search_attr}={escape_filter_chars(name)})"
        try:
            conn.search(s.basedn, search, search_scope=SUBTREE, attributes=[s.mail_attr])
        except LDAPException as e:
            raise ResolutionError(f"Error with {name}: ldap search failed: {e}") from e

        entries = list(conn.entries)
        if len(entries) > 1:
            raise ResolutionError(f"Multiple entries found for client {name} ({len(entries)}). Not sending mail.")
        if not entries:
            raise ResolutionError(f"Entry not found for client {name}. Not sending mail.")

        attrs = entries[0].entry_attributes_as_dict
        for attr, values in attrs.items():
            if attr.lower() == s.mail_attr.lower() and values:
                return str(values[0])
        return f"{name}@{s.default_domain}"

    def close(self) -> None:
        if self._conn is not None:
            self._conn.unbind()
            self._conn = None

    def _connection(self) -> Any:
        if self._conn is not None:
            return self._conn
        if self._failed:
            raise DirectoryError("ldap connection is not available")
        try:
            self._conn = self._connect(self.settings)
        except LDAPException as e:
            self._failed = True
            raise DirectoryError(f"Could not setup ldap connection to {self.settings.uri}: {e}") from e
        log.info("Connected to directory %s", self.settings.uri)
        return self._conn
