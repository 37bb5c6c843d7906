"""
LDAP Org Reader
===============

Reads users and groups out of an LDAP directory and rebuilds the group
hierarchy implied by group membership.
"""

from .adapters.ldap_adapter import LDAPAdapter
from .builder import read_groups, read_users
from .config import ProviderConfig, SetPath, read_config
from .facade.org_reader_facade import LdapOrgReader, OrgReadResult
from .hierarchy import OrgHierarchy, build_org_hierarchy, resolve_hierarchy
from .records import AttributeRecord

__version__ = "0.1.0"

__all__ = [
    'AttributeRecord',
    'LDAPAdapter',
    'LdapOrgReader',
    'OrgHierarchy',
    'OrgReadResult',
    'ProviderConfig',
    'SetPath',
    'build_org_hierarchy',
    'read_config',
    'read_groups',
    'read_users',
    'resolve_hierarchy',
]
