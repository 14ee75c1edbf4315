"""Tests for scope resolution of pricing rules and rental packages."""

import pytest

from fleetfare.exceptions import ConfigStoreError, PackageNotFoundError
from fleetfare.models import ConfigKind, PackageInput, PricingRules, RentalPackage, ScopeKey, VehicleClass
from fleetfare.services.config_resolver import (
    DEFAULT_PRICING,
    DEFAULT_RENTAL_PACKAGES,
    ConfigResolver,
    default_packages,
    default_pricing,
)

OWNER_X = "fleet@northwind.test"
OWNER_Y = "dispatch@southline.test"


def rules_with(**sedan_overrides):
    rules = default_pricing()
    rules[VehicleClass.SEDAN] = rules[VehicleClass.SEDAN].model_copy(update=sedan_overrides)
    return rules


class FailingStore:
    def get(self, scope_key):
        return None

    def set(self, scope_key, value):
        raise ConfigStoreError(f"disk full while writing {scope_key}")


class ExplodingStore:
    def get(self, scope_key):
        raise RuntimeError("connection reset")

    def set(self, scope_key, value):
        pass


class TestScopeKey:
    """Scope keys normalise and derive storage keys deterministically."""

    def test_storage_key_includes_kind_owner_and_branch(self):
        scope = ScopeKey.of(OWNER_X, "Pune")
        assert scope.storage_key(ConfigKind.PRICING) == f"pricing:{OWNER_X}:Pune"
        assert scope.storage_key(ConfigKind.PACKAGES) == f"packages:{OWNER_X}:Pune"

    def test_empty_branch_means_global(self):
        assert ScopeKey.of(OWNER_X, "").branch_name == "Global"
        assert ScopeKey.of(OWNER_X, None).is_global
        assert ScopeKey.of(OWNER_X, "global").branch_name == "Global"

    def test_empty_owner_means_head_office(self):
        assert ScopeKey.of("", "Pune").owner_id == "admin"

    def test_separator_in_names_cannot_collide(self):
        first = ScopeKey.of("a:b", "c").storage_key(ConfigKind.PRICING)
        second = ScopeKey.of("a", "b:c").storage_key(ConfigKind.PRICING)
        assert first != second

    def test_parent_of_branch_is_owner_global(self):
        assert ScopeKey.of(OWNER_X, "Pune").parent() == ScopeKey.of(OWNER_X, "Global")
        assert ScopeKey.of(OWNER_X, "Global").parent() is None


class TestResolvePricing:
    """Fallback chain: branch, then owner Global, then compiled defaults."""

    def test_unconfigured_scope_gets_compiled_defaults(self, resolver):
        for owner, branch in [(OWNER_X, "Pune"), (OWNER_X, "Global"), ("", ""), ("new@tenant.test", "Goa")]:
            rules = resolver.resolve_pricing(owner, branch)
            assert rules is not None
            assert set(rules) == set(VehicleClass)
            assert rules[VehicleClass.SEDAN] == DEFAULT_PRICING[VehicleClass.SEDAN]
            assert rules[VehicleClass.SUV] == DEFAULT_PRICING[VehicleClass.SUV]

    def test_branch_falls_back_to_owner_global(self, resolver):
        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=250), default_packages())
        assert resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 250.0

    def test_stored_global_beats_compiled_defaults(self, resolver):
        resolver.save_config(OWNER_X, "Global", rules_with(local_per_km_rate=21), default_packages())
        assert resolver.resolve_pricing(OWNER_X, "Global")[VehicleClass.SEDAN].local_per_km_rate == 21.0

    def test_saving_one_scope_leaves_others_alone(self, resolver):
        before_b = resolver.resolve_pricing(OWNER_X, "Mumbai")
        before_y = resolver.resolve_pricing(OWNER_Y, "Pune")
        before_y_global = resolver.resolve_pricing(OWNER_Y, "Global")

        resolver.save_config(OWNER_X, "Pune", rules_with(local_base_fare=999), default_packages())

        assert resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 999.0
        assert resolver.resolve_pricing(OWNER_X, "Mumbai") == before_b
        assert resolver.resolve_pricing(OWNER_Y, "Pune") == before_y
        assert resolver.resolve_pricing(OWNER_Y, "Global") == before_y_global

    def test_global_update_does_not_leak_into_branch_override(self, resolver):
        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=210), default_packages())
        resolver.save_config(OWNER_X, "Pune", rules_with(local_base_fare=230), default_packages())

        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=260, local_per_km_rate=30), default_packages())

        pune = resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN]
        mumbai = resolver.resolve_pricing(OWNER_X, "Mumbai")[VehicleClass.SEDAN]
        assert pune.local_base_fare == 230.0
        assert pune.local_per_km_rate == 20.0
        assert mumbai.local_base_fare == 260.0
        assert mumbai.local_per_km_rate == 30.0

    def test_branch_rules_are_never_merged_with_global(self, resolver, memory_store):
        resolver.save_config(OWNER_X, "Global", rules_with(local_waiting_rate=9), default_packages())
        # Branch stored with only one field: the rest read as 0, not as Global's values
        memory_store.set(
            ScopeKey.of(OWNER_X, "Pune").storage_key(ConfigKind.PRICING),
            {"Sedan": {"local_base_fare": 180}, "SUV": {"local_base_fare": 280}},
        )
        sedan = resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN]
        assert sedan.local_base_fare == 180.0
        assert sedan.local_waiting_rate == 0.0

    def test_save_never_writes_global(self, resolver, memory_store):
        resolver.save_config(OWNER_X, "Pune", rules_with(local_base_fare=400), default_packages())
        global_scope = ScopeKey.of(OWNER_X, "Global")
        assert memory_store.get(global_scope.storage_key(ConfigKind.PRICING)) is None
        assert memory_store.get(global_scope.storage_key(ConfigKind.PACKAGES)) is None

    def test_missing_vehicle_class_completed_from_compiled_default(self, resolver, memory_store):
        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=111), default_packages())
        memory_store.set(
            ScopeKey.of(OWNER_X, "Pune").storage_key(ConfigKind.PRICING),
            {"Sedan": {"local_base_fare": 150}},
        )
        rules = resolver.resolve_pricing(OWNER_X, "Pune")
        assert rules[VehicleClass.SEDAN].local_base_fare == 150.0
        assert rules[VehicleClass.SUV] == DEFAULT_PRICING[VehicleClass.SUV]

    @pytest.mark.parametrize("raw", ["{not json", "[]", "{}", "42", "null", '{"Sedan": "cheap"}', '{"Truck": {}}'])
    def test_malformed_branch_value_treated_as_not_found(self, resolver, memory_store, raw):
        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=222), default_packages())
        memory_store.set_raw(ScopeKey.of(OWNER_X, "Pune").storage_key(ConfigKind.PRICING), raw)
        assert resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 222.0

    def test_legacy_dashboard_documents_are_read(self, resolver, memory_store):
        memory_store.set(
            ScopeKey.of(OWNER_X, "Global").storage_key(ConfigKind.PRICING),
            {"Sedan": {"localBaseFare": 175, "outstationBaseRate": 50}, "SUV": {"localBaseFare": 275}},
        )
        rules = resolver.resolve_pricing(OWNER_X, "Pune")
        assert rules[VehicleClass.SEDAN].local_base_fare == 175.0
        assert rules[VehicleClass.SEDAN].outstation_base_rate_one_way == 50.0

    def test_store_read_failure_degrades_to_defaults(self):
        rules = ConfigResolver(ExplodingStore()).resolve_pricing(OWNER_X, "Pune")
        assert rules[VehicleClass.SEDAN] == DEFAULT_PRICING[VehicleClass.SEDAN]

    def test_store_write_failure_propagates(self):
        with pytest.raises(ConfigStoreError):
            ConfigResolver(FailingStore()).save_config(OWNER_X, "Pune", default_pricing(), default_packages())

    def test_defaults_are_not_shared_mutable_state(self, resolver):
        rules = resolver.resolve_pricing(OWNER_X, "Pune")
        rules[VehicleClass.SEDAN].local_base_fare = 1
        assert resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 200.0


class TestResolvePackages:
    """Package catalogs follow the same fallback chain."""

    def test_unconfigured_scope_gets_default_catalog(self, resolver):
        packages = resolver.resolve_packages(OWNER_X, "Pune")
        assert [p.id for p in packages] == ["1hr", "2hr", "4hr", "8hr"]
        assert packages == DEFAULT_RENTAL_PACKAGES

    def test_branch_catalog_overrides_global_and_keeps_order(self, resolver):
        resolver.save_config(OWNER_X, "Global", default_pricing(), default_packages())
        branch_packages = [
            RentalPackage(id="12hr", name="12 Hr / 120 km", hours=12, km=120, price_sedan=2400, price_suv=3200),
            RentalPackage(id="3hr", name="3 Hr / 30 km", hours=3, km=30, price_sedan=600, price_suv=850),
        ]
        resolver.save_config(OWNER_X, "Pune", default_pricing(), branch_packages)

        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Pune")] == ["12hr", "3hr"]
        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Mumbai")] == ["1hr", "2hr", "4hr", "8hr"]

    def test_empty_or_malformed_catalog_falls_back(self, resolver, memory_store):
        resolver.save_config(
            OWNER_X, "Global", default_pricing(),
            [RentalPackage(id="6hr", name="6 Hr / 60 km", price_sedan=1200, price_suv=1600)],
        )
        key = ScopeKey.of(OWNER_X, "Pune").storage_key(ConfigKind.PACKAGES)

        memory_store.set(key, [])
        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Pune")] == ["6hr"]

        memory_store.set(key, [{"name": "no id"}])
        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Pune")] == ["6hr"]

        memory_store.set(key, {"id": "1hr"})
        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Pune")] == ["6hr"]


class TestPackageEditing:
    """Catalog edits copy the effective catalog into the edited scope."""

    def test_add_package_copies_effective_catalog_to_scope(self, resolver):
        created = resolver.add_package(
            OWNER_X, "Pune",
            PackageInput(name="10 Hr / 100 km", hours=10, km=100, price_sedan=2000, price_suv="2700"),
        )
        assert created.id.startswith("pkg-")
        assert created.price_suv == 2700.0

        pune = resolver.resolve_packages(OWNER_X, "Pune")
        assert [p.id for p in pune] == ["1hr", "2hr", "4hr", "8hr", created.id]
        # Other scopes still see the defaults
        assert len(resolver.resolve_packages(OWNER_X, "Global")) == 4

    def test_added_package_ids_are_unique(self, resolver):
        first = resolver.add_package(OWNER_X, "Pune", PackageInput(name="A"))
        second = resolver.add_package(OWNER_X, "Pune", PackageInput(name="B"))
        assert first.id != second.id

    def test_update_package_keeps_id_and_position(self, resolver):
        updated = resolver.update_package(
            OWNER_X, "Global", "2hr", PackageInput(name="2 Hr / 25 km", hours=2, km=25, price_sedan=450, price_suv=650)
        )
        assert updated.id == "2hr"
        packages = resolver.resolve_packages(OWNER_X, "Global")
        assert packages[1].name == "2 Hr / 25 km"
        assert packages[1].price_sedan == 450.0

    def test_update_unknown_package_raises(self, resolver):
        with pytest.raises(PackageNotFoundError):
            resolver.update_package(OWNER_X, "Global", "nope", PackageInput(name="x"))

    def test_remove_package(self, resolver):
        remaining = resolver.remove_package(OWNER_X, "Global", "8hr")
        assert [p.id for p in remaining] == ["1hr", "2hr", "4hr"]
        assert [p.id for p in resolver.resolve_packages(OWNER_X, "Pune")] == ["1hr", "2hr", "4hr"]

    def test_remove_unknown_package_raises(self, resolver):
        with pytest.raises(PackageNotFoundError):
            resolver.remove_package(OWNER_X, "Global", "nope")

    def test_package_edits_leave_pricing_inherited(self, resolver):
        resolver.save_config(OWNER_X, "Global", rules_with(local_base_fare=205), default_packages())
        resolver.add_package(OWNER_X, "Pune", PackageInput(name="Airport drop", price_sedan=900))
        assert resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 205.0


class TestDescribeScope:
    """Resolution source reporting."""

    def test_sources_follow_the_chain(self, resolver):
        assert resolver.describe_scope(OWNER_X, "Pune").pricing_source == "default"

        resolver.save_config(OWNER_X, "Global", default_pricing(), default_packages())
        described = resolver.describe_scope(OWNER_X, "Pune")
        assert described.pricing_source == "global"
        assert described.packages_source == "global"

        resolver.save_config(OWNER_X, "Pune", default_pricing(), default_packages())
        described = resolver.describe_scope(OWNER_X, "Pune")
        assert described.pricing_source == "branch"
        assert described.owner_id == OWNER_X
        assert described.branch_name == "Pune"

    def test_sql_backed_resolver_round_trips_configuration(self, sql_resolver):
        sql_resolver.save_config(OWNER_X, "Pune", rules_with(local_base_fare=321), default_packages())
        assert sql_resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SEDAN].local_base_fare == 321.0
        assert sql_resolver.resolve_pricing(OWNER_X, "Mumbai")[VehicleClass.SEDAN].local_base_fare == 200.0
        assert isinstance(sql_resolver.resolve_pricing(OWNER_X, "Pune")[VehicleClass.SUV], PricingRules)
