"""
LDAP Org Reader Facade

This facade ties the pieces of the org reader together: it picks the provider
configured for a location target, searches the directory through the LDAP
adapter, builds User and Group entities and resolves the group hierarchy.
Downstream consumers receive the entities through an emit callback.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..adapters.ldap_adapter import LDAPAdapter
from ..builder import Entity, read_groups, read_users
from ..config import ProviderConfig, load_config_file, read_config
from ..constants import LOCATION_TYPE
from ..exceptions import ProviderNotFoundError
from ..hierarchy import OrgHierarchy, build_org_hierarchy
from ..observer import Observer, logging_observer
from ..records import AttributeRecord

logger = logging.getLogger(__name__)

Emit = Callable[[Entity], None]


@dataclass
class OrgReadResult:
    """Entities read from one provider."""

    users: List[Entity] = field(default_factory=list)
    groups: List[Entity] = field(default_factory=list)
    member_users: Dict[str, List[str]] = field(default_factory=dict)
    hierarchy: OrgHierarchy = field(default_factory=OrgHierarchy)


class LdapOrgReader:
    """
    Reads users and groups out of the configured LDAP providers.

    Each call opens its own adapter, so a reader can be reused for several
    targets and several runs. The same directory content always produces the
    same entities.
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        adapter_factory: Callable[[ProviderConfig], Any] = LDAPAdapter,
        max_workers: Optional[int] = None,
        observer: Optional[Observer] = None,
    ) -> None:
        """
        Initialize the org reader.

        Args:
            providers: Typed provider configurations
            adapter_factory: Builds the transport for a provider (default:
                LDAPAdapter); the transport is a context manager offering
                search_users() and search_groups()
            max_workers: Thread pool size for entity building (None builds
                inline); results are identical and not faster, since building
                is CPU-bound
            observer: Progress observer (defaults to logging)
        """
        if providers is None:
            raise TypeError("providers must be a list of ProviderConfig, got None")

        self.providers = list(providers)
        self.adapter_factory = adapter_factory
        self.max_workers = max_workers
        self.observer = observer or logging_observer(logger)

        logger.info(f"✨ LDAP org reader initialized with {len(self.providers)} provider(s)")

    @classmethod
    def from_config(cls, settings: Mapping[str, Any], **kwargs) -> "LdapOrgReader":
        return cls(read_config(settings), **kwargs)

    @classmethod
    def from_config_file(cls, path: str, **kwargs) -> "LdapOrgReader":
        return cls(load_config_file(path), **kwargs)

    def find_provider(self, target: str) -> ProviderConfig:
        """
        Find the provider configured for a target.

        Raises:
            ProviderNotFoundError: If no provider matches the target
        """
        normalized = target.rstrip("/")
        for provider in self.providers:
            if provider.target == normalized:
                return provider

        raise ProviderNotFoundError(
            f"There is no LDAP org provider that matches {target}. "
            f"Please add a configuration entry for it under providers."
        )

    def transform(
        self,
        provider: ProviderConfig,
        user_records: Sequence[AttributeRecord],
        group_records: Sequence[AttributeRecord],
    ) -> OrgReadResult:
        """
        Build entities from already retrieved records and resolve the hierarchy.

        This performs no I/O; read_org() feeds it with directory results.
        """
        users = read_users(user_records, provider, self.observer, self.max_workers)
        group_result = read_groups(group_records, provider, self.observer, self.max_workers)

        hierarchy = build_org_hierarchy(
            group_result.groups,
            group_result.member_groups,
            users=users,
            member_users=group_result.member_users,
            observer=self.observer,
        )

        return OrgReadResult(
            users=users,
            groups=group_result.groups,
            member_users=group_result.member_users,
            hierarchy=hierarchy,
        )

    def read_org(self, target: str) -> OrgReadResult:
        """
        Read the full org of the provider matching target.

        Raises:
            ProviderNotFoundError: If no provider matches the target
            LDAPException: If a directory search fails
        """
        provider = self.find_provider(target)
        logger.info(f"🚀 Reading LDAP org from {provider.target}")

        with self.adapter_factory(provider) as adapter:
            user_records = adapter.search_users()
            group_records = adapter.search_groups()

        result = self.transform(provider, user_records, group_records)
        logger.info(
            f"✅ Read {len(result.users)} users and {len(result.groups)} groups "
            f"from {provider.target}"
        )
        return result

    def read_location(self, location_type: str, target: str, emit: Emit) -> bool:
        """
        Read a location and emit its entities.

        Groups are emitted first, then users.

        Args:
            location_type: Location type; only 'ldap-org' is handled
            target: Location target, matched against provider targets
            emit: Callback receiving every entity

        Returns:
            bool: False if the location type is not handled, True otherwise
        """
        if location_type != LOCATION_TYPE:
            return False

        result = self.read_org(target)
        for group in result.groups:
            emit(group)
        for user in result.users:
            emit(user)

        return True
