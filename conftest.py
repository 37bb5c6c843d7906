"""
Shared pytest fixtures for the LDAP org reader tests.
"""

from typing import Any, Dict

import pytest

from ldap_org.config import read_config
from ldap_org.records import AttributeRecord

TARGET = "ldaps://ds.example.net"


def make_record(dn: str, **attributes: Any) -> AttributeRecord:
    """Build an AttributeRecord; scalar keyword values become single-value attributes."""
    pairs = []
    for name, values in attributes.items():
        if isinstance(values, str):
            values = [values]
        pairs.append((name, tuple(values)))
    return AttributeRecord(dn=dn, attributes=tuple(pairs))


def user_record(name: str, groups=(), **attributes: Any) -> AttributeRecord:
    """A person entry; keyword attributes (including uid) replace the defaults."""
    dn = f"uid={name},ou=people,dc=example,dc=net"
    attributes.setdefault("uid", name)
    attributes.setdefault("cn", name.title())
    attributes.setdefault("mail", f"{name}@example.net")
    attributes.setdefault("entryUUID", f"uuid-{name}")
    attributes.setdefault("entryDN", dn)
    if groups:
        attributes["memberOf"] = [f"cn={g},ou=groups,dc=example,dc=net" for g in groups]
    return make_record(dn, **attributes)


def group_record(name: str, users=(), groups=(), **attributes: Any) -> AttributeRecord:
    dn = f"cn={name},ou=groups,dc=example,dc=net"
    attributes.setdefault("cn", name)
    attributes.setdefault("entryUUID", f"uuid-{name}")
    attributes.setdefault("entryDN", dn)
    members = [f"uid={u},ou=people,dc=example,dc=net" for u in users]
    members += [f"cn={g},ou=groups,dc=example,dc=net" for g in groups]
    if members:
        attributes["member"] = members
    return make_record(dn, **attributes)


@pytest.fixture
def settings() -> Dict[str, Any]:
    return {
        "providers": [
            {
                "target": TARGET,
                "users": {"dn": "ou=people,dc=example,dc=net"},
                "groups": {"dn": "ou=groups,dc=example,dc=net"},
            }
        ]
    }


@pytest.fixture
def provider(settings):
    return read_config(settings)[0]


@pytest.fixture
def make():
    """Factories for raw directory records."""

    class RecordFactory:
        record = staticmethod(make_record)
        user = staticmethod(user_record)
        group = staticmethod(group_record)

    return RecordFactory
