"""
Directory record normalization.

Turns raw directory entries (a distinguished name plus an ordered list of
attribute name / multi-value pairs) into attribute lookups, and provides the
extraction primitives used when building entities:

- single_value(): scalar fields, only when exactly one value is present
- reference_values(): names referenced by DN-valued attributes such as
  member or memberOf, filtered on a relative naming attribute
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

AttributeMap = Mapping[str, Tuple[str, ...]]


@dataclass(frozen=True)
class AttributeRecord:
    """A single raw directory entry as returned by a search."""

    dn: str
    attributes: Sequence[Tuple[str, Sequence[str]]] = field(default_factory=tuple)

    def to_map(self) -> Dict[str, Tuple[str, ...]]:
        return to_attribute_map(self.attributes)


def to_attribute_map(
    raw_attributes: Iterable[Tuple[str, Sequence[str]]],
) -> Dict[str, Tuple[str, ...]]:
    """
    Build an attribute lookup keyed by attribute name.

    Values stay strings and keep their order. If an attribute name appears
    more than once the later occurrence replaces the earlier one.

    Args:
        raw_attributes: Iterable of (attribute name, values) pairs

    Returns:
        Dict mapping attribute name to a tuple of its values
    """
    return {name: tuple(values) for name, values in raw_attributes}


def attribute_values(
    attributes: AttributeMap, attribute_name: Optional[str]
) -> Optional[Tuple[str, ...]]:
    """
    Look up all values of an attribute.

    Returns None when the attribute name is unconfigured or the attribute is
    absent from the record; an empty tuple means present without values.
    """
    if not attribute_name:
        return None
    return attributes.get(attribute_name)


def single_value(
    attributes: AttributeMap, attribute_name: Optional[str]
) -> Optional[str]:
    """
    Extract a scalar value from an attribute.

    Only attributes holding exactly one value produce a result. Zero or
    multiple values yield None so that a surprising multi-valued attribute
    never ends up in a scalar field.
    """
    values = attribute_values(attributes, attribute_name)
    if values is not None and len(values) == 1:
        return values[0]
    return None


def parse_reference(value: str, rdn: str) -> Optional[str]:
    """
    Extract the referenced name from a DN value.

    Examples:
        >>> parse_reference("cn=admins,ou=groups,dc=example,dc=net", "cn")
        'admins'
        >>> parse_reference("uid=jdoe,ou=people,dc=example,dc=net", "cn") is None
        True
    """
    first = value.split(",")[0]
    prefix = f"{rdn}="
    if first.startswith(prefix):
        name = first[len(prefix):]
        if name:
            return name
    return None


def reference_values(
    attributes: AttributeMap, attribute_name: Optional[str], rdn: str
) -> Optional[List[str]]:
    """
    Extract the names referenced by a DN-valued, multi-valued attribute.

    For every value the first comma separated component is kept if it starts
    with "<rdn>=", and the remainder after the "=" is returned. Values with
    another naming attribute are dropped. Input order is preserved and
    duplicates are kept; callers deduplicate where needed.

    Args:
        attributes: Attribute lookup for one record
        attribute_name: Attribute holding the references (e.g. 'member')
        rdn: Required relative naming attribute (e.g. 'cn' or 'uid')

    Returns:
        List of referenced names, or None if the attribute is unconfigured
        or absent
    """
    values = attribute_values(attributes, attribute_name)
    if values is None:
        return None

    names = []
    for value in values:
        name = parse_reference(value, rdn)
        if name is not None:
            names.append(name)
    return names


def unique(values: Iterable[str]) -> List[str]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))
