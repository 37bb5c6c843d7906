"""
Shared constants for LDAP org entities.
"""

API_VERSION = "backstage.io/v1alpha1"

USER_KIND = "User"
GROUP_KIND = "Group"

LOCATION_TYPE = "ldap-org"

# Provenance annotations carried by every entity
LDAP_RDN_ANNOTATION = "backstage.io/ldap-rdn"
LDAP_UUID_ANNOTATION = "backstage.io/ldap-uuid"
LDAP_DN_ANNOTATION = "backstage.io/ldap-dn"

# Fixed operational attributes read for provenance
ENTRY_UUID_ATTRIBUTE = "entryUUID"
ENTRY_DN_ATTRIBUTE = "entryDN"

# Known entity shapes. A None leaf accepts any value; FREE_FORM accepts any
# key below it (labels, annotations).
FREE_FORM = "*"

_METADATA_SCHEMA = {
    "name": None,
    "namespace": None,
    "title": None,
    "description": None,
    "labels": FREE_FORM,
    "annotations": FREE_FORM,
    "tags": None,
}

_PROFILE_SCHEMA = {
    "displayName": None,
    "email": None,
    "picture": None,
}

USER_SCHEMA = {
    "metadata": _METADATA_SCHEMA,
    "spec": {
        "profile": _PROFILE_SCHEMA,
        "memberOf": None,
    },
}

GROUP_SCHEMA = {
    "metadata": _METADATA_SCHEMA,
    "spec": {
        "type": None,
        "profile": _PROFILE_SCHEMA,
        "ancestors": None,
        "children": None,
        "descendants": None,
    },
}
