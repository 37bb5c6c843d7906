"""
Provider configuration for the LDAP org reader.

Settings are read from a plain mapping (usually a JSON file) of the form:

    {
        "providers": [
            {
                "target": "ldaps://ds.example.net",
                "bind": {"dn": "uid=reader,ou=people,dc=example,dc=net",
                         "keyring_service": "ldap_example"},
                "users": {"dn": "ou=people,dc=example,dc=net",
                          "options": {"filter": "(uid=*)"},
                          "set": [{"path": "metadata.namespace", "value": "staff"}],
                          "map": {"picture": "jpegPhotoUrl"}},
                "groups": {"dn": "ou=groups,dc=example,dc=net"}
            }
        ]
    }

Every provider is merged over DEFAULT_CONFIG. Missing or null values keep the
default, nested mappings merge, and lists replace the default list. Map an
optional field to "" to stop populating it.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .constants import FREE_FORM, GROUP_SCHEMA, GROUP_KIND, USER_KIND, USER_SCHEMA
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SEARCH_SCOPES = ("base", "one", "sub")

CONFIG_PATH_ENV = "LDAP_ORG_CONFIG"

DEFAULT_CONFIG: Dict[str, Any] = {
    "users": {
        "dn": "ou=people",
        "options": {
            "scope": "one",
            "attributes": ["*", "+"],
        },
        "map": {
            "rdn": "uid",
            "name": "uid",
            "display_name": "cn",
            "email": "mail",
            "member_of": "memberOf",
        },
    },
    "groups": {
        "dn": "ou=groups",
        "options": {
            "scope": "one",
            "attributes": ["*", "+"],
        },
        "map": {
            "rdn": "cn",
            "name": "cn",
            "type": "groupType",
            "description": "description",
            "members": "member",
        },
    },
}


@dataclass
class SearchOptions:
    """Options for a single directory search."""

    scope: str = "one"
    filter: Optional[str] = None
    attributes: List[str] = field(default_factory=lambda: ["*", "+"])
    paged: Optional[bool] = None


@dataclass
class BindConfig:
    """
    Credentials for the bind operation.

    When no secret is given the password is looked up in the system keyring
    under keyring_service, keyed by the bind DN.
    """

    dn: str
    secret: Optional[str] = None
    keyring_service: Optional[str] = None


@dataclass(frozen=True)
class SetPath:
    """
    Static override: assign a literal value at a nested entity path.

    Applied to every freshly built entity before attribute mapping runs.
    """

    path: Tuple[str, ...]
    value: Any

    @classmethod
    def parse(cls, path: str, value: Any) -> "SetPath":
        """Create an override from a dot separated path such as 'spec.profile.email'."""
        if not isinstance(path, str) or not path:
            raise ConfigurationError(f"Override path must be a non-empty string, got {path!r}")

        steps = tuple(path.split("."))
        if any(not step for step in steps):
            raise ConfigurationError(f"Override path '{path}' contains an empty segment")

        return cls(steps, value)

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    def validate(self, schema: Mapping[str, Any], kind: str) -> None:
        """
        Check the path against a known entity shape.

        Raises:
            ConfigurationError: If the path does not exist on the entity kind
        """
        node: Any = schema
        for key in self.path:
            if node == FREE_FORM:
                return
            if node is None:
                raise ConfigurationError(
                    f"Override path '{self.dotted}' descends below a scalar field of {kind}"
                )
            if key not in node:
                raise ConfigurationError(
                    f"Override path '{self.dotted}' is not a known {kind} field"
                )
            node = node[key]


@dataclass
class UserFieldMap:
    """Directory attribute names used to populate User entities."""

    rdn: str = "uid"
    name: str = "uid"
    description: Optional[str] = None
    display_name: Optional[str] = "cn"
    email: Optional[str] = "mail"
    picture: Optional[str] = None
    member_of: Optional[str] = "memberOf"


@dataclass
class GroupFieldMap:
    """Directory attribute names used to populate Group entities."""

    rdn: str = "cn"
    name: str = "cn"
    description: Optional[str] = "description"
    display_name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None
    type: Optional[str] = "groupType"
    members: Optional[str] = "member"


@dataclass
class UserConfig:
    dn: str = "ou=people"
    options: SearchOptions = field(default_factory=SearchOptions)
    overrides: List[SetPath] = field(default_factory=list)
    field_map: UserFieldMap = field(default_factory=UserFieldMap)


@dataclass
class GroupConfig:
    dn: str = "ou=groups"
    options: SearchOptions = field(default_factory=SearchOptions)
    overrides: List[SetPath] = field(default_factory=list)
    field_map: GroupFieldMap = field(default_factory=GroupFieldMap)


@dataclass
class ProviderConfig:
    """
    The configuration for a single LDAP provider.

    Attributes:
        target: Prefix of the location target this provider matches, e.g.
            "ldaps://ds.example.net", with no trailing slash
        bind: Bind credentials; anonymous access when None
        users: Search and mapping settings for User entities
        groups: Search and mapping settings for Group entities
    """

    target: str
    users: UserConfig = field(default_factory=UserConfig)
    groups: GroupConfig = field(default_factory=GroupConfig)
    bind: Optional[BindConfig] = None


def _merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge overrides onto defaults; None keeps the default, lists replace."""
    merged = copy.deepcopy(dict(defaults))
    for key, value in overrides.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _require_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{where} must be a mapping, got {type(value).__name__}")
    return value


def _read_options(c: Any, where: str) -> SearchOptions:
    c = _require_mapping(c, where)
    scope = c.get("scope", "one")
    if scope not in SEARCH_SCOPES:
        raise ConfigurationError(
            f"{where}.scope must be one of {list(SEARCH_SCOPES)}, got {scope!r}"
        )

    attributes = c.get("attributes", ["*", "+"])
    if not isinstance(attributes, list) or not all(isinstance(a, str) for a in attributes):
        raise ConfigurationError(f"{where}.attributes must be a list of strings")

    search_filter = c.get("filter")
    if search_filter is not None and not isinstance(search_filter, str):
        raise ConfigurationError(f"{where}.filter must be a string")

    paged = c.get("paged")
    if paged is not None and not isinstance(paged, bool):
        raise ConfigurationError(f"{where}.paged must be a boolean")

    return SearchOptions(scope=scope, filter=search_filter, attributes=attributes, paged=paged)


def _read_overrides(
    entries: Any, schema: Mapping[str, Any], kind: str, where: str
) -> List[SetPath]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{where}.set must be a list of {{path, value}} entries")

    overrides = []
    for entry in entries:
        if not isinstance(entry, Mapping) or "path" not in entry or "value" not in entry:
            raise ConfigurationError(f"{where}.set entries need both 'path' and 'value'")
        set_path = SetPath.parse(entry["path"], entry["value"])
        set_path.validate(schema, kind)
        overrides.append(set_path)
    return overrides


def _read_field_map(c: Any, map_type: type, where: str):
    c = _require_mapping(c, f"{where}.map")
    known = set(map_type.__dataclass_fields__)
    unknown = sorted(set(c) - known)
    if unknown:
        raise ConfigurationError(f"{where}.map has unknown fields: {unknown}")
    for required in ("rdn", "name"):
        if not isinstance(c.get(required), str) or not c.get(required):
            raise ConfigurationError(f"{where}.map.{required} must be a non-empty string")
    return map_type(**c)


def _read_bind(c: Any, where: str) -> Optional[BindConfig]:
    if c is None:
        return None
    c = _require_mapping(c, f"{where}.bind")
    if not c.get("dn"):
        raise ConfigurationError(f"{where}.bind.dn is required")
    return BindConfig(
        dn=c["dn"],
        secret=c.get("secret"),
        keyring_service=c.get("keyring_service"),
    )


def _read_provider(c: Any, index: int) -> ProviderConfig:
    where = f"providers[{index}]"
    c = _require_mapping(c, where)

    target = c.get("target")
    if not target or not isinstance(target, str):
        raise ConfigurationError(f"{where}.target is required")

    merged = _merge(
        DEFAULT_CONFIG,
        {
            "users": _require_mapping(c.get("users"), f"{where}.users"),
            "groups": _require_mapping(c.get("groups"), f"{where}.groups"),
        },
    )
    users = merged["users"]
    groups = merged["groups"]
    for kind, section in (("users", users), ("groups", groups)):
        if not isinstance(section["dn"], str) or not section["dn"]:
            raise ConfigurationError(f"{where}.{kind}.dn must be a non-empty string")

    return ProviderConfig(
        target=target.rstrip("/"),
        bind=_read_bind(c.get("bind"), where),
        users=UserConfig(
            dn=users["dn"],
            options=_read_options(users["options"], f"{where}.users.options"),
            overrides=_read_overrides(users.get("set"), USER_SCHEMA, USER_KIND, f"{where}.users"),
            field_map=_read_field_map(users["map"], UserFieldMap, f"{where}.users"),
        ),
        groups=GroupConfig(
            dn=groups["dn"],
            options=_read_options(groups["options"], f"{where}.groups.options"),
            overrides=_read_overrides(groups.get("set"), GROUP_SCHEMA, GROUP_KIND, f"{where}.groups"),
            field_map=_read_field_map(groups["map"], GroupFieldMap, f"{where}.groups"),
        ),
    )


def read_config(settings: Mapping[str, Any]) -> List[ProviderConfig]:
    """
    Parse provider configuration.

    Args:
        settings: The root of the LDAP org settings, holding a 'providers' list

    Returns:
        List[ProviderConfig]: One typed configuration per provider

    Raises:
        TypeError: If settings is not a mapping
        ConfigurationError: If a provider is missing required values or holds
            malformed ones
    """
    if not isinstance(settings, Mapping):
        raise TypeError("Configuration must be a dictionary")

    providers = settings.get("providers") or []
    if not isinstance(providers, list):
        raise ConfigurationError("'providers' must be a list")

    configs = [_read_provider(c, index) for index, c in enumerate(providers)]
    logger.debug(f"Read {len(configs)} LDAP org provider configuration(s)")
    return configs


def load_config_file(path: str) -> List[ProviderConfig]:
    """Read a JSON settings file and parse it with read_config()."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            settings = json.load(fh)
    except OSError as e:
        raise ConfigurationError(f"Could not read configuration file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file {path} is not valid JSON: {e}")

    return read_config(settings)


def config_path_from_env() -> Optional[str]:
    """Resolve the settings file path from the environment (and .env)."""
    load_dotenv()
    return os.getenv(CONFIG_PATH_ENV)
