#!/usr/bin/env python3
"""
Pricing configuration management utility for the fleet fare service.

Usage:
    python manage_config.py init                     - Store default rates at the head office Global scope
    python manage_config.py show [owner] [branch]    - Show effective rates and packages for a scope
    python manage_config.py list [owner]             - List scopes with stored configuration
    python manage_config.py reset <owner> [branch]   - Remove stored configuration for a scope
"""

import os
import sys
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fleetfare.config import settings
from fleetfare.database import DatabaseManager
from fleetfare.models import ConfigKind, ScopeKey
from fleetfare.services.config_resolver import (
    ConfigResolver,
    default_packages,
    default_pricing,
)
from fleetfare.store import SQLConfigStore


def _resolver() -> ConfigResolver:
    return ConfigResolver(SQLConfigStore(DatabaseManager()))


def init_config():
    """Seed the head office Global scope with the built-in defaults."""
    print("Initializing head office configuration...")
    resolver = _resolver()
    resolver.save_config(
        settings.HEAD_OFFICE_OWNER,
        settings.GLOBAL_BRANCH,
        default_pricing(),
        default_packages(),
    )
    print("Configuration initialized successfully!")
    show_config(settings.HEAD_OFFICE_OWNER, settings.GLOBAL_BRANCH)


def show_config(owner_id: str = "", branch_name: str = ""):
    """Display the effective configuration for a scope."""
    resolved = _resolver().describe_scope(owner_id, branch_name)

    print("\n" + "=" * 60)
    print(f"EFFECTIVE PRICING FOR {resolved.owner_id} / {resolved.branch_name}")
    print(f"(rates from: {resolved.pricing_source}, packages from: {resolved.packages_source})")
    print("=" * 60)

    vehicles = list(resolved.pricing.keys())
    print(f"{'Rule':<32}" + "".join(f"{v.value:>12}" for v in vehicles))
    print("-" * (32 + 12 * len(vehicles)))
    for field in type(resolved.pricing[vehicles[0]]).model_fields:
        values = "".join(f"{getattr(resolved.pricing[v], field):>12g}" for v in vehicles)
        print(f"{field:<32}{values}")

    print("\nRental packages:")
    print(f"{'Id':<18} {'Name':<20} {'Hours':>6} {'Km':>6} {'Sedan':>8} {'SUV':>8}")
    for p in resolved.packages:
        print(f"{p.id:<18} {p.name:<20} {p.hours:>6g} {p.km:>6g} {p.price_sedan:>8g} {p.price_suv:>8g}")
    print("=" * 60)


def list_scopes(owner_id: str = ""):
    """List stored configuration keys, optionally for one owner."""
    db = DatabaseManager()
    owner_key = ScopeKey.of(owner_id).storage_key(ConfigKind.PRICING).split(":")[1] if owner_id else ""
    shown = 0
    for key in db.list_entries():
        kind, owner, branch = key.split(":", 2)
        if owner_key and owner != owner_key:
            continue
        print(f"{kind:<10} {owner:<30} {branch}")
        shown += 1
    print(f"\nTotal stored entries: {shown}")


def reset_config(owner_id: str, branch_name: str = ""):
    """Remove stored configuration so the scope falls back again."""
    scope = ScopeKey.of(owner_id, branch_name)
    confirm = input(
        f"Remove stored configuration for {scope.owner_id}/{scope.branch_name}? (yes/no): "
    )

    if confirm.lower() == 'yes':
        db = DatabaseManager()
        removed = 0
        for kind in ConfigKind:
            if db.delete_key(scope.storage_key(kind)):
                removed += 1
        print(f"Removed {removed} stored entries.")
    else:
        print("Reset cancelled.")


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        return

    command = sys.argv[1].lower()
    args = sys.argv[2:]

    if command == 'init':
        init_config()
    elif command == 'show':
        show_config(*args[:2])
    elif command == 'list':
        list_scopes(*args[:1])
    elif command == 'reset' and args:
        reset_config(*args[:2])
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == "__main__":
    main()
