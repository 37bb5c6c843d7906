"""
Entity builder.

Turns normalized directory records into User and Group entities. Every record
is built on its own, in this order:

1. an empty entity shell
2. static overrides, in declared order
3. attribute mapping (single values and DN references)
4. provenance annotations (rdn, entryUUID, entryDN)

Later steps win when they write the same path.
"""

import copy
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import GroupConfig, ProviderConfig, SetPath, UserConfig
from .constants import (
    API_VERSION,
    ENTRY_DN_ATTRIBUTE,
    ENTRY_UUID_ATTRIBUTE,
    GROUP_KIND,
    LDAP_DN_ANNOTATION,
    LDAP_RDN_ANNOTATION,
    LDAP_UUID_ANNOTATION,
    USER_KIND,
)
from .observer import GROUPS_READ, USERS_READ, Observer, notify
from .records import AttributeMap, AttributeRecord, reference_values, single_value, unique

Entity = Dict[str, Any]

# (field map attribute, entity path)
USER_FIELD_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("name", ("metadata", "name")),
    ("description", ("metadata", "description")),
    ("display_name", ("spec", "profile", "displayName")),
    ("email", ("spec", "profile", "email")),
    ("picture", ("spec", "profile", "picture")),
)

GROUP_FIELD_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("name", ("metadata", "name")),
    ("description", ("metadata", "description")),
    ("display_name", ("spec", "profile", "displayName")),
    ("email", ("spec", "profile", "email")),
    ("picture", ("spec", "profile", "picture")),
    ("type", ("spec", "type")),
)


@dataclass
class GroupMembers:
    """Deduplicated direct members of one group; None when the attribute is absent."""

    users: Optional[List[str]] = None
    groups: Optional[List[str]] = None


@dataclass
class GroupReadResult:
    """
    Groups built from one search, plus their raw membership edges.

    member_users and member_groups are keyed by group name and only hold
    groups whose member attribute was present.
    """

    groups: List[Entity] = field(default_factory=list)
    member_users: Dict[str, List[str]] = field(default_factory=dict)
    member_groups: Dict[str, List[str]] = field(default_factory=dict)


def new_user_entity() -> Entity:
    return {
        "apiVersion": API_VERSION,
        "kind": USER_KIND,
        "metadata": {
            "name": "",
            "annotations": {},
        },
        "spec": {
            "profile": {},
            "memberOf": [],
        },
    }


def new_group_entity() -> Entity:
    return {
        "apiVersion": API_VERSION,
        "kind": GROUP_KIND,
        "metadata": {
            "name": "",
            "annotations": {},
        },
        "spec": {
            "type": "unknown",
            "profile": {},
            "ancestors": [],
            "children": [],
            "descendants": [],
        },
    }


def entity_name(entity: Entity) -> str:
    """Return metadata.name as a string, or '' when an override left it unusable."""
    metadata = entity.get("metadata")
    if not isinstance(metadata, dict) or metadata.get("name") is None:
        return ""
    return str(metadata["name"])


def assign_path(target: Dict[str, Any], path: Sequence[str], value: Any) -> None:
    """
    Assign value at a nested path, creating mappings along the way.

    Intermediate values that are missing or not mappings (lists, scalars)
    are replaced by empty mappings. The final key is overwritten.
    """
    parent = target
    for key in path[:-1]:
        next_target = parent.get(key)
        if not isinstance(next_target, dict):
            next_target = {}
            parent[key] = next_target
        parent = next_target
    parent[path[-1]] = value


def apply_set_path(entity: Entity, set_path: SetPath) -> None:
    """Apply a static override; the literal is copied so entities never share it."""
    if not set_path.path:
        return
    assign_path(entity, set_path.path, copy.deepcopy(set_path.value))


def _apply_common(
    entity: Entity,
    attributes: AttributeMap,
    overrides: Iterable[SetPath],
    field_map: Any,
    rules: Tuple[Tuple[str, Tuple[str, ...]], ...],
) -> None:
    for set_path in overrides:
        apply_set_path(entity, set_path)

    for map_field, path in rules:
        value = single_value(attributes, getattr(field_map, map_field))
        if value is not None:
            assign_path(entity, path, value)


def _apply_provenance(entity: Entity, attributes: AttributeMap, rdn: str) -> None:
    provenance = (
        (rdn, LDAP_RDN_ANNOTATION),
        (ENTRY_UUID_ATTRIBUTE, LDAP_UUID_ANNOTATION),
        (ENTRY_DN_ATTRIBUTE, LDAP_DN_ANNOTATION),
    )
    for attribute_name, annotation in provenance:
        value = single_value(attributes, attribute_name)
        if value is not None:
            assign_path(entity, ("metadata", "annotations", annotation), value)


def build_user(attributes: AttributeMap, config: UserConfig, group_rdn: str) -> Entity:
    """
    Build one User entity.

    Args:
        attributes: Normalized attributes of one directory record
        config: User search and mapping configuration
        group_rdn: Naming attribute of groups, used to read memberOf references

    Returns:
        Entity: The User entity
    """
    entity = new_user_entity()
    field_map = config.field_map
    _apply_common(entity, attributes, config.overrides, field_map, USER_FIELD_RULES)

    member_of = reference_values(attributes, field_map.member_of, group_rdn)
    if member_of is not None:
        assign_path(entity, ("spec", "memberOf"), unique(member_of))

    _apply_provenance(entity, attributes, field_map.rdn)
    return entity


def build_group(attributes: AttributeMap, config: GroupConfig) -> Entity:
    """Build one Group entity; relationship lists stay empty until the hierarchy is resolved."""
    entity = new_group_entity()
    _apply_common(entity, attributes, config.overrides, config.field_map, GROUP_FIELD_RULES)
    _apply_provenance(entity, attributes, config.field_map.rdn)
    return entity


def group_members(attributes: AttributeMap, config: GroupConfig, user_rdn: str) -> GroupMembers:
    """
    Extract the direct members of a group.

    The member attribute is read twice: once with the user naming attribute
    for member users and once with the group naming attribute for member
    groups. When both use the same naming attribute (cn in Active Directory)
    a name can land in both lists; the hierarchy resolver only keeps names
    that match a known group.
    """
    members_attribute = config.field_map.members
    users = reference_values(attributes, members_attribute, user_rdn)
    groups = reference_values(attributes, members_attribute, config.field_map.rdn)
    return GroupMembers(
        users=unique(users) if users is not None else None,
        groups=unique(groups) if groups is not None else None,
    )


def _build_all(
    build: Callable[[AttributeRecord], Any],
    records: Sequence[AttributeRecord],
    max_workers: Optional[int],
) -> List[Any]:
    """
    Apply build to every record, in record order.

    With max_workers > 1 records are built on a thread pool. Building is pure
    Python and holds the GIL, so the pool does not make a run faster. Output
    order and content are identical either way.
    """
    if records is None:
        raise TypeError("records must be a sequence of AttributeRecord, got None")

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(build, records))
    return [build(record) for record in records]


def read_users(
    records: Sequence[AttributeRecord],
    provider: ProviderConfig,
    observer: Optional[Observer] = None,
    max_workers: Optional[int] = None,
) -> List[Entity]:
    """
    Build User entities from the records of a user search.

    Args:
        records: Raw records returned by the directory
        provider: Provider configuration
        observer: Optional progress observer
        max_workers: Build records on a thread pool of this size; output is
            the same as inline building and no faster (see _build_all)

    Returns:
        List[Entity]: One User entity per record, in record order
    """
    group_rdn = provider.groups.field_map.rdn

    def build(record: AttributeRecord) -> Entity:
        return build_user(record.to_map(), provider.users, group_rdn)

    users = _build_all(build, records, max_workers)
    notify(observer, USERS_READ, users=len(users))
    return users


def read_groups(
    records: Sequence[AttributeRecord],
    provider: ProviderConfig,
    observer: Optional[Observer] = None,
    max_workers: Optional[int] = None,
) -> GroupReadResult:
    """
    Build Group entities and their direct membership edges.

    Records that share a group name contribute to the same member lists,
    deduplicated in first-seen order. Groups that end up without a name are
    still returned but contribute no membership edges.
    """
    user_rdn = provider.users.field_map.rdn

    def build(record: AttributeRecord) -> Tuple[Entity, GroupMembers]:
        attributes = record.to_map()
        return (
            build_group(attributes, provider.groups),
            group_members(attributes, provider.groups, user_rdn),
        )

    built = _build_all(build, records, max_workers)

    result = GroupReadResult()
    for entity, members in built:
        result.groups.append(entity)
        name = entity_name(entity)
        if not name:
            continue
        if members.users is not None:
            result.member_users[name] = unique(result.member_users.get(name, []) + members.users)
        if members.groups is not None:
            result.member_groups[name] = unique(result.member_groups.get(name, []) + members.groups)

    notify(
        observer,
        GROUPS_READ,
        groups=len(result.groups),
        member_users=len(result.member_users),
        member_groups=len(result.member_groups),
    )
    return result
