"""
Group hierarchy resolution.

Membership in a directory is a flat list of edges: every group names its
direct members. From those edges this module derives, for every group, its
direct children, all descendants and all ancestors.

Directory data is messy, so the resolver tolerates:
- dangling references (a member name that is not a known group)
- groups without a name; they never take part in a relationship
- self references (a group listing itself as a member)
- cycles (A contains B, B contains A); every member of a cycle becomes both
  ancestor and descendant of the others, but never of itself

Only group-to-group relationships are expanded. User memberOf lists come
straight from the directory and are not made transitive here.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .builder import Entity, assign_path, entity_name
from .observer import HIERARCHY_RESOLVED, Observer, notify


@dataclass(frozen=True)
class OrgHierarchy:
    """
    Resolved relationships keyed by group name.

    Every relationship tuple is sorted by name.
    """

    children: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    descendants: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    ancestors: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    edges: int = 0
    dangling_references: int = 0
    self_references: int = 0
    cyclic_groups: Tuple[str, ...] = ()


def _reachable(adjacency: List[List[int]], start: int) -> Tuple[Set[int], bool]:
    """
    Breadth-first walk from start.

    Returns the reachable nodes (start excluded) and whether start can reach
    itself, i.e. sits on a cycle.
    """
    visited: Set[int] = set()
    on_cycle = False
    queue = deque([start])

    while queue:
        node = queue.popleft()
        for child in adjacency[node]:
            if child == start:
                on_cycle = True
                continue
            if child not in visited:
                visited.add(child)
                queue.append(child)

    return visited, on_cycle


def resolve_hierarchy(
    group_names: Iterable[str], member_groups: Mapping[str, Iterable[str]]
) -> OrgHierarchy:
    """
    Compute children, descendants and ancestors for every group.

    Args:
        group_names: Names of all known groups; empty names are not groups
        member_groups: Direct member names per group name; names that do not
            match a known group are ignored

    Returns:
        OrgHierarchy: Relationships for every known group

    Raises:
        TypeError: If group_names or member_groups is None
    """
    if group_names is None:
        raise TypeError("group_names must be an iterable of group names, got None")
    if member_groups is None:
        raise TypeError("member_groups must be a mapping of group name to members, got None")

    names = sorted(set(group_names) - {""})
    index: Dict[str, int] = {name: i for i, name in enumerate(names)}
    adjacency: List[List[int]] = [[] for _ in names]

    edges = 0
    dangling = 0
    self_references = 0

    for parent_name in sorted(member_groups):
        members = list(member_groups[parent_name])
        parent = index.get(parent_name)
        if parent is None:
            dangling += len(members)
            continue

        seen = set(adjacency[parent])
        for member_name in members:
            child = index.get(member_name)
            if child is None:
                dangling += 1
            elif child == parent:
                self_references += 1
            elif child not in seen:
                seen.add(child)
                adjacency[parent].append(child)
                edges += 1

    descendant_sets: List[Set[int]] = []
    ancestor_sets: List[Set[int]] = [set() for _ in names]
    cyclic: List[str] = []

    for node in range(len(names)):
        reachable, on_cycle = _reachable(adjacency, node)
        descendant_sets.append(reachable)
        if on_cycle:
            cyclic.append(names[node])
        for descendant in reachable:
            ancestor_sets[descendant].add(node)

    def as_names(nodes: Iterable[int]) -> Tuple[str, ...]:
        return tuple(names[i] for i in sorted(nodes))

    return OrgHierarchy(
        children={name: as_names(adjacency[i]) for i, name in enumerate(names)},
        descendants={name: as_names(descendant_sets[i]) for i, name in enumerate(names)},
        ancestors={name: as_names(ancestor_sets[i]) for i, name in enumerate(names)},
        edges=edges,
        dangling_references=dangling,
        self_references=self_references,
        cyclic_groups=tuple(cyclic),
    )


def build_org_hierarchy(
    groups: List[Entity],
    member_groups: Mapping[str, Iterable[str]],
    users: Optional[List[Entity]] = None,
    member_users: Optional[Mapping[str, Iterable[str]]] = None,
    observer: Optional[Observer] = None,
) -> OrgHierarchy:
    """
    Resolve the group hierarchy and write it onto the Group entities.

    spec.children, spec.descendants and spec.ancestors of every group are
    replaced. User entities are only read, to count member references that
    match neither a user nor a group.

    Args:
        groups: Group entities as built by read_groups()
        member_groups: Direct member group names per group name
        users: Optional User entities
        member_users: Optional direct member user names per group name
        observer: Optional progress observer

    Returns:
        OrgHierarchy: The resolved relationships

    Raises:
        TypeError: If groups or member_groups is None
    """
    if groups is None:
        raise TypeError("groups must be a list of Group entities, got None")

    hierarchy = resolve_hierarchy([entity_name(group) for group in groups], member_groups)

    for group in groups:
        name = entity_name(group)
        assign_path(group, ("spec", "children"), list(hierarchy.children.get(name, ())))
        assign_path(group, ("spec", "descendants"), list(hierarchy.descendants.get(name, ())))
        assign_path(group, ("spec", "ancestors"), list(hierarchy.ancestors.get(name, ())))

    dangling_users = 0
    if users is not None and member_users is not None:
        known = {entity_name(user) for user in users} | set(hierarchy.children)
        for members in member_users.values():
            dangling_users += sum(1 for member in members if member not in known)

    notify(
        observer,
        HIERARCHY_RESOLVED,
        groups=len(hierarchy.children),
        edges=hierarchy.edges,
        dangling_references=hierarchy.dangling_references,
        dangling_user_references=dangling_users,
        self_references=hierarchy.self_references,
        cyclic_groups=len(hierarchy.cyclic_groups),
    )
    return hierarchy
