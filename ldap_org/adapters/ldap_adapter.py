import getpass
import logging
from typing import Any, Dict, List, Optional, Sequence

import keyring
from keyring.errors import KeyringError
from ldap3 import ALL, BASE, LEVEL, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException

from ..config import ProviderConfig, SearchOptions
from ..exceptions import ConfigurationError
from ..records import AttributeRecord

logger = logging.getLogger(__name__)

SCOPE_MAPPING = {"base": BASE, "one": LEVEL, "sub": SUBTREE}

DEFAULT_FILTER = "(objectClass=*)"


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def record_from_response(item: Dict[str, Any]) -> AttributeRecord:
    """
    Convert one ldap3 response entry into an AttributeRecord.

    Raw attribute values are used so that every value stays a string,
    whatever schema formatters the server advertises. Binary attributes
    (objectGUID, jpegPhoto, ...) are not valid UTF-8 and are left out.

    Args:
        item: Response dictionary of type 'searchResEntry'

    Returns:
        AttributeRecord: The entry's DN and its attributes in server order
    """
    raw_attributes = item.get("raw_attributes") or {}

    attributes = []
    for name, values in raw_attributes.items():
        if isinstance(values, (bytes, str)):
            values = [values]
        try:
            decoded = tuple(_decode(v) for v in values)
        except UnicodeDecodeError:
            logger.debug(f"Skipping binary attribute {name} of {item.get('dn')}")
            continue
        attributes.append((name, decoded))

    return AttributeRecord(dn=item.get("dn", ""), attributes=tuple(attributes))


class LDAPAdapter:
    """
    LDAP connection adapter for one org provider.

    This class handles the server connection, the optional bind and the
    searches for users and groups. It returns plain AttributeRecord objects so
    that the rest of the org reader never touches ldap3 types.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        timeout: int = 30,
        page_size: int = 500,
        interactive: bool = False,
    ):
        """
        Initialize LDAP adapter for a provider.

        Args:
            provider: Provider configuration; its target is an LDAP URL such
                as 'ldaps://ds.example.net'
            timeout: Connect and receive timeout in seconds (default: 30)
            page_size: Page size for paged searches (default: 500)
            interactive: Prompt for the bind password when neither the
                configuration nor the keyring provides one

        Raises:
            TypeError: If provider is not a ProviderConfig
        """
        if not isinstance(provider, ProviderConfig):
            raise TypeError("provider must be a ProviderConfig")

        self.provider = provider
        self.target = provider.target
        self.bind = provider.bind
        self.timeout = timeout
        self.page_size = page_size
        self.interactive = interactive

        self._server = None
        self._password = None

        logger.debug(f"LDAP adapter initialized for target: {self.target}")

    def _get_password(self) -> str:
        """
        Resolve the bind password.

        Order: the configured secret, the keyring entry for
        (keyring_service, bind DN), then an interactive prompt if allowed.

        Raises:
            ConfigurationError: If no password can be found
        """
        if self._password:
            return self._password

        if self.bind.secret:
            self._password = self.bind.secret
            return self._password

        if self.bind.keyring_service:
            try:
                password = keyring.get_password(self.bind.keyring_service, self.bind.dn)
                if password:
                    logger.debug("Using password from keyring")
                    self._password = password
                    return password
            except KeyringError as e:
                logger.warning(f"Could not retrieve password from keyring: {e}")

        if self.interactive:
            self._password = getpass.getpass(f"Enter LDAP password for {self.bind.dn}: ")
            return self._password

        raise ConfigurationError(
            f"No bind secret configured for {self.bind.dn} and none found in the keyring"
        )

    def _create_server(self) -> Server:
        if not self._server:
            self._server = Server(self.target, get_info=ALL, connect_timeout=self.timeout)
            logger.debug(f"LDAP server object created: {self.target}")
        return self._server

    def _create_connection(self) -> Connection:
        """
        Create and bind a read-only LDAP connection.

        Raises:
            LDAPException: If connection or authentication fails
        """
        server = self._create_server()

        try:
            if self.bind:
                connection = Connection(
                    server,
                    user=self.bind.dn,
                    password=self._get_password(),
                    auto_bind=True,
                    read_only=True,
                    receive_timeout=self.timeout,
                )
            else:
                connection = Connection(
                    server, auto_bind=True, read_only=True, receive_timeout=self.timeout
                )
        except LDAPException as e:
            logger.error(f"❌ LDAP connection to {self.target} failed: {e}")
            raise

        if not connection.bound:
            raise LDAPException(f"Failed to bind to {self.target}")

        logger.info(f"🔌 Connected to {self.target}")
        return connection

    def test_connection(self) -> bool:
        """
        Test that the server accepts a connection and a base search on the root DSE.

        Returns:
            bool: True if the connection test succeeds, False otherwise
        """
        conn = None
        try:
            conn = self._create_connection()
            success = conn.search(
                search_base="",
                search_filter=DEFAULT_FILTER,
                search_scope=BASE,
                attributes=["namingContexts"],
            )
            if success:
                logger.info("✅ Connection test successful")
                return True
            logger.warning(f"⚠️  Connection test search failed: {conn.result}")
            return False
        except LDAPException as e:
            logger.error(f"❌ LDAP connection test failed: {e}")
            return False
        finally:
            self._unbind(conn)

    def _unbind(self, conn: Optional[Connection]) -> None:
        if conn is None:
            return
        try:
            conn.unbind()
            logger.debug("LDAP connection closed")
        except LDAPException as e:
            logger.debug(f"Ignoring error while closing connection: {e}")

    def search(self, base_dn: str, options: SearchOptions) -> List[AttributeRecord]:
        """
        Run one search and return its entries as AttributeRecords.

        Args:
            base_dn: Search root
            options: Scope, filter, attributes and paging settings

        Returns:
            List[AttributeRecord]: Entries in the order the server returned them

        Raises:
            ValueError: If the scope is unknown
            LDAPException: If the search fails
        """
        if options.scope not in SCOPE_MAPPING:
            raise ValueError(f"scope must be one of: {list(SCOPE_MAPPING.keys())}")

        search_kwargs = {
            "search_base": base_dn,
            "search_filter": options.filter or DEFAULT_FILTER,
            "search_scope": SCOPE_MAPPING[options.scope],
            "attributes": list(options.attributes),
        }

        conn = None
        try:
            conn = self._create_connection()
            logger.debug(
                f"Executing search: filter='{search_kwargs['search_filter']}', "
                f"base='{base_dn}', scope='{options.scope}', paged={bool(options.paged)}"
            )

            if options.paged:
                response = conn.extend.standard.paged_search(
                    paged_size=self.page_size, generator=False, **search_kwargs
                )
            else:
                conn.search(**search_kwargs)
                response = conn.response

            records = self._records_from_response(response or [])
            logger.info(f"🔍 Search of {base_dn} returned {len(records)} entries")
            return records

        except LDAPException as e:
            logger.error(f"❌ LDAP search of {base_dn} failed: {e}")
            raise
        finally:
            self._unbind(conn)

    def _records_from_response(self, response: Sequence[Dict[str, Any]]) -> List[AttributeRecord]:
        return [
            record_from_response(item)
            for item in response
            if isinstance(item, dict) and item.get("type") == "searchResEntry"
        ]

    def search_users(self) -> List[AttributeRecord]:
        return self.search(self.provider.users.dn, self.provider.users.options)

    def search_groups(self) -> List[AttributeRecord]:
        return self.search(self.provider.groups.dn, self.provider.groups.options)

    def close(self) -> None:
        """Drop cached server and credentials."""
        self._server = None
        self._password = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        bind_dn = self.bind.dn if self.bind else None
        return f"LDAPAdapter(target='{self.target}', bind_dn={bind_dn!r})"
