"""
Export helpers for org read results.
"""

import json
from typing import Any, Dict, List

import pandas as pd

from .builder import Entity
from .facade.org_reader_facade import OrgReadResult


def entities_to_dataframe(entities: List[Entity]) -> pd.DataFrame:
    """
    Flatten entities into a DataFrame.

    Nested fields become dotted columns (e.g. 'metadata.name',
    'spec.profile.email'); list fields such as spec.memberOf stay lists.

    Args:
        entities: User or Group entities

    Returns:
        pd.DataFrame: One row per entity
    """
    if not entities:
        return pd.DataFrame()
    return pd.json_normalize(entities, sep=".")


def result_to_dict(result: OrgReadResult) -> Dict[str, Any]:
    return {
        "users": result.users,
        "groups": result.groups,
        "groupMemberUsers": result.member_users,
    }


def entities_to_json(result: OrgReadResult, indent: int = 2) -> str:
    """Serialize a read result with sorted keys so identical input gives identical output."""
    return json.dumps(result_to_dict(result), indent=indent, sort_keys=True, ensure_ascii=False)
