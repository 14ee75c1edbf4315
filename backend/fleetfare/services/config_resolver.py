"""Resolution of the pricing rules and rental packages in effect for a tenant scope."""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from fleetfare.exceptions import PackageNotFoundError
from fleetfare.models import (
    ConfigKind,
    PackageInput,
    PricingRules,
    PricingRuleSet,
    RentalPackage,
    ResolvedConfig,
    ScopeKey,
    VehicleClass,
)
from fleetfare.store import ConfigStore

logger = logging.getLogger(__name__)

SOURCE_BRANCH = "branch"
SOURCE_GLOBAL = "global"
SOURCE_DEFAULT = "default"

DEFAULT_PRICING: Dict[VehicleClass, PricingRules] = {
    VehicleClass.SEDAN: PricingRules(
        local_base_fare=200,
        local_base_km=5,
        local_per_km_rate=20,
        local_waiting_rate=2,
        rental_extra_km_rate=15,
        rental_extra_hr_rate=100,
        outstation_min_km_per_day=300,
        outstation_base_rate_one_way=0,
        outstation_extra_km_rate=13,
        outstation_driver_allowance=400,
        outstation_night_allowance=300,
    ),
    VehicleClass.SUV: PricingRules(
        local_base_fare=300,
        local_base_km=5,
        local_per_km_rate=25,
        local_waiting_rate=3,
        rental_extra_km_rate=18,
        rental_extra_hr_rate=150,
        outstation_min_km_per_day=300,
        outstation_base_rate_one_way=0,
        outstation_extra_km_rate=17,
        outstation_driver_allowance=500,
        outstation_night_allowance=400,
    ),
}

DEFAULT_RENTAL_PACKAGES: List[RentalPackage] = [
    RentalPackage(id="1hr", name="1 Hr / 10 km", hours=1, km=10, price_sedan=200, price_suv=300),
    RentalPackage(id="2hr", name="2 Hr / 20 km", hours=2, km=20, price_sedan=400, price_suv=600),
    RentalPackage(id="4hr", name="4 Hr / 40 km", hours=4, km=40, price_sedan=800, price_suv=1100),
    RentalPackage(id="8hr", name="8 Hr / 80 km", hours=8, km=80, price_sedan=1600, price_suv=2200),
]


def default_pricing() -> PricingRuleSet:
    """Fresh copy of the compiled-in rate tables."""
    return {vehicle: rules.model_copy() for vehicle, rules in DEFAULT_PRICING.items()}


def default_packages() -> List[RentalPackage]:
    """Fresh copy of the compiled-in package catalog."""
    return [package.model_copy() for package in DEFAULT_RENTAL_PACKAGES]


def parse_pricing(value: Any) -> Optional[PricingRuleSet]:
    """
    Decode a stored rule set, or None if it is missing or malformed.

    A stored set that lacks a vehicle class gets that class's compiled
    default; it is never completed from a parent scope.
    """
    if not isinstance(value, Mapping) or not value:
        return None

    parsed: Dict[VehicleClass, PricingRules] = {}
    for raw_class, raw_rules in value.items():
        try:
            vehicle = VehicleClass(raw_class)
        except ValueError:
            continue
        try:
            parsed[vehicle] = PricingRules.model_validate(raw_rules)
        except ValidationError:
            return None

    if not parsed:
        return None
    return {
        vehicle: parsed.get(vehicle) or DEFAULT_PRICING[vehicle].model_copy()
        for vehicle in VehicleClass
    }


def parse_packages(value: Any) -> Optional[List[RentalPackage]]:
    """Decode a stored package catalog, or None if it is missing, empty or malformed."""
    if not isinstance(value, list) or not value:
        return None
    try:
        return [RentalPackage.model_validate(item) for item in value]
    except ValidationError:
        return None


def dump_pricing(rules: Mapping[Any, Any]) -> Dict[str, Dict[str, float]]:
    return {
        VehicleClass(vehicle).value: PricingRules.model_validate(table).model_dump()
        for vehicle, table in rules.items()
    }


def dump_packages(packages: Iterable[Any]) -> List[Dict[str, Any]]:
    return [RentalPackage.model_validate(package).model_dump() for package in packages]


class ConfigResolver:
    """
    Resolves effective configuration through the fallback chain:
    branch scope -> owner's Global scope -> compiled defaults.

    Stored configuration at a scope is always used whole, never merged
    field by field with its parent.
    """

    def __init__(self, store: ConfigStore):
        self.store = store

    def _read(self, scope: ScopeKey, kind: ConfigKind) -> Optional[Any]:
        key = scope.storage_key(kind)
        try:
            return self.store.get(key)
        except Exception as e:
            logger.warning("Could not read %s, treating as not configured: %s", key, e)
            return None

    def _lookup(
        self,
        scope: ScopeKey,
        kind: ConfigKind,
        parser: Callable[[Any], Optional[Any]],
    ) -> Tuple[Optional[Any], str]:
        chain = [(scope, SOURCE_GLOBAL if scope.is_global else SOURCE_BRANCH)]
        parent = scope.parent()
        if parent is not None:
            chain.append((parent, SOURCE_GLOBAL))

        for candidate, source in chain:
            raw = self._read(candidate, kind)
            if raw is None:
                continue
            value = parser(raw)
            if value is not None:
                return value, source
            logger.warning(
                "Ignoring malformed %s configuration at %s",
                kind.value, candidate.storage_key(kind),
            )
        return None, SOURCE_DEFAULT

    def _pricing_with_source(self, scope: ScopeKey) -> Tuple[PricingRuleSet, str]:
        rules, source = self._lookup(scope, ConfigKind.PRICING, parse_pricing)
        return (rules if rules is not None else default_pricing()), source

    def _packages_with_source(self, scope: ScopeKey) -> Tuple[List[RentalPackage], str]:
        packages, source = self._lookup(scope, ConfigKind.PACKAGES, parse_packages)
        return (packages if packages is not None else default_packages()), source

    def resolve_pricing(self, owner_id: str, branch_name: str) -> PricingRuleSet:
        """
        Effective rate tables for every vehicle class at a scope.
        Never raises and never returns a partial mapping.
        """
        rules, _ = self._pricing_with_source(ScopeKey.of(owner_id, branch_name))
        return rules

    def resolve_packages(self, owner_id: str, branch_name: str) -> List[RentalPackage]:
        """Effective rental package catalog at a scope, in display order."""
        packages, _ = self._packages_with_source(ScopeKey.of(owner_id, branch_name))
        return packages

    def describe_scope(self, owner_id: str, branch_name: str) -> ResolvedConfig:
        """Effective configuration plus which level of the chain supplied it."""
        scope = ScopeKey.of(owner_id, branch_name)
        rules, pricing_source = self._pricing_with_source(scope)
        packages, packages_source = self._packages_with_source(scope)
        return ResolvedConfig(
            owner_id=scope.owner_id,
            branch_name=scope.branch_name,
            pricing=rules,
            packages=packages,
            pricing_source=pricing_source,
            packages_source=packages_source,
        )

    def save_config(
        self,
        owner_id: str,
        branch_name: str,
        rules: Mapping[Any, Any],
        packages: Iterable[Any],
    ) -> None:
        """
        Store rules and packages at exactly this scope.
        Never writes to Global implicitly; store failures propagate.
        """
        scope = ScopeKey.of(owner_id, branch_name)
        self.store.set(scope.storage_key(ConfigKind.PRICING), dump_pricing(rules))
        self.store.set(scope.storage_key(ConfigKind.PACKAGES), dump_packages(packages))
        logger.info("Saved pricing configuration for %s/%s", scope.owner_id, scope.branch_name)

    def _save_packages(self, scope: ScopeKey, packages: List[RentalPackage]) -> None:
        self.store.set(scope.storage_key(ConfigKind.PACKAGES), dump_packages(packages))
        logger.info(
            "Saved %d rental packages for %s/%s",
            len(packages), scope.owner_id, scope.branch_name,
        )

    def add_package(self, owner_id: str, branch_name: str, package: PackageInput) -> RentalPackage:
        """Append a package to the scope's effective catalog and store it at this scope."""
        scope = ScopeKey.of(owner_id, branch_name)
        packages = self.resolve_packages(scope.owner_id, scope.branch_name)

        existing_ids = {p.id for p in packages}
        package_id = f"pkg-{int(time.time() * 1000)}"
        suffix = 1
        while package_id in existing_ids:
            package_id = f"pkg-{int(time.time() * 1000)}-{suffix}"
            suffix += 1

        created = RentalPackage(id=package_id, **package.model_dump())
        self._save_packages(scope, packages + [created])
        return created

    def update_package(
        self,
        owner_id: str,
        branch_name: str,
        package_id: str,
        package: PackageInput,
    ) -> RentalPackage:
        """
        Replace the fields of one package, keeping its id and position.

        Raises:
            PackageNotFoundError: if the id is not in the effective catalog
        """
        scope = ScopeKey.of(owner_id, branch_name)
        packages = self.resolve_packages(scope.owner_id, scope.branch_name)

        for index, current in enumerate(packages):
            if current.id == package_id:
                updated = RentalPackage(id=current.id, **package.model_dump())
                packages[index] = updated
                self._save_packages(scope, packages)
                return updated
        raise PackageNotFoundError(package_id)

    def remove_package(self, owner_id: str, branch_name: str, package_id: str) -> List[RentalPackage]:
        """
        Drop one package from the scope's catalog.
        An emptied catalog falls back through the chain again.
        """
        scope = ScopeKey.of(owner_id, branch_name)
        packages = self.resolve_packages(scope.owner_id, scope.branch_name)

        remaining = [p for p in packages if p.id != package_id]
        if len(remaining) == len(packages):
            raise PackageNotFoundError(package_id)
        self._save_packages(scope, remaining)
        return remaining


# Singleton instance for the default resolver
_default_resolver: Optional[ConfigResolver] = None


def get_config_resolver() -> ConfigResolver:
    """Get the default resolver bound to the configured store."""
    global _default_resolver
    if _default_resolver is None:
        from fleetfare.store import get_config_store
        _default_resolver = ConfigResolver(get_config_store())
    return _default_resolver
