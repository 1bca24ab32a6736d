"""Checkout database management CLI.

Usage:
    python src/manage.py setup-db               # Create all tables
    python src/manage.py drop-db                # Drop all tables
    python src/manage.py release-expired        # Give back stock held by abandoned checkouts
    python src/manage.py release-stale-labels   # Hand back label claims left by a crashed issuer
"""

import argparse
import sys

from shared.config import Settings
from shared.utils.logging import configure_logging


def setup_databases(settings: Settings):
    from shared.domain import init_domain
    from shared.utils.db import setup_db

    domain = init_domain(settings)
    print("Creating database schema...")
    setup_db(domain)
    print("Done.")


def drop_databases(settings: Settings):
    from shared.domain import init_domain
    from shared.utils.db import drop_db

    domain = init_domain(settings)
    print("Dropping database schema...")
    drop_db(domain)
    print("Done.")


def release_expired(settings: Settings):
    from inventory.stock.expiry import ReleaseExpiredHolds
    from shared.domain import init_domain

    domain = init_domain(settings)
    with domain.domain_context():
        released = domain.process(ReleaseExpiredHolds(), asynchronous=False)
    print(f"Released {released} expired stock hold(s).")


def release_stale_labels(settings: Settings):
    from fulfillment.fulfillment.shipping import ReleaseStaleLabelClaims
    from shared.domain import init_domain

    domain = init_domain(settings)
    with domain.domain_context():
        released = domain.process(ReleaseStaleLabelClaims(), asynchronous=False)
    print(f"Released {released} stale label claim(s).")


COMMANDS = {
    "setup-db": (setup_databases, "Create all database tables"),
    "drop-db": (drop_databases, "Drop all database tables"),
    "release-expired": (release_expired, "Release expired stock holds once"),
    "release-stale-labels": (release_stale_labels, "Release stale shipping label claims once"),
}


def main():
    parser = argparse.ArgumentParser(description="Checkout database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, help_text) in COMMANDS.items():
        subparsers.add_parser(name, help=help_text)

    args = parser.parse_args()
    settings = Settings.from_env()
    configure_logging(settings.environment, settings.log_level, settings.log_dir)

    if args.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)
    COMMANDS[args.command][0](settings)


if __name__ == "__main__":
    main()
