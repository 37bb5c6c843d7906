#!/usr/bin/env python3
"""
Read an LDAP org and write its users and groups.

Usage:
    ldap-org-read --target ldaps://ds.example.net --config ldap_org.json
    ldap-org-read --target ldaps://ds.example.net --format csv --output org

The configuration file defaults to the LDAP_ORG_CONFIG environment variable,
which may also be set in a .env file.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ldap3.core.exceptions import LDAPException

from .adapters.ldap_adapter import LDAPAdapter
from .config import config_path_from_env, load_config_file
from .exceptions import LdapOrgError
from .export import entities_to_dataframe, entities_to_json
from .facade.org_reader_facade import LdapOrgReader, OrgReadResult

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Read users and groups from an LDAP directory")
    parser.add_argument("--target", required=True, help="Provider target, e.g. ldaps://ds.example.net")
    parser.add_argument("--config", help="JSON provider configuration (default: $LDAP_ORG_CONFIG)")
    parser.add_argument("--output", help="Output file (JSON) or prefix (CSV); JSON goes to stdout if omitted")
    parser.add_argument("--format", choices=["json", "csv"], default="json", help="Output format")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used to build entities (same output as inline building, not faster)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _write(result: OrgReadResult, output_format: str, output: Optional[str]) -> None:
    if output_format == "csv":
        prefix = output or "ldap_org"
        entities_to_dataframe(result.users).to_csv(f"{prefix}_users.csv", index=False)
        entities_to_dataframe(result.groups).to_csv(f"{prefix}_groups.csv", index=False)
        logger.info(f"📁 Wrote {prefix}_users.csv and {prefix}_groups.csv")
        return

    payload = entities_to_json(result)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(payload)
        logger.info(f"📁 Wrote {output}")
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config_path = args.config or config_path_from_env()
    if not config_path:
        logger.error("No configuration file given and LDAP_ORG_CONFIG not set")
        return 1

    interactive = hasattr(sys.stdin, "isatty") and sys.stdin.isatty()

    try:
        reader = LdapOrgReader(
            load_config_file(config_path),
            adapter_factory=lambda provider: LDAPAdapter(provider, interactive=interactive),
            max_workers=args.workers,
        )
        result = reader.read_org(args.target)
        _write(result, args.format, args.output)
    except (LdapOrgError, LDAPException) as e:
        logger.error(f"❌ Failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
