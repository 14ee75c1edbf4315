"""Fare calculation service implementing the trip pricing rules."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional, Protocol, Union, runtime_checkable

from fleetfare.config import settings
from fleetfare.models import (
    EstimateResult,
    OutstationSubType,
    PricingRules,
    RentalPackage,
    TripCategory,
    TripRequest,
    VehicleClass,
    coerce_amount,
)

RuleTables = Union[PricingRules, Mapping[VehicleClass, PricingRules]]


def _money(value: float) -> float:
    return round(coerce_amount(value), 2)


def _fmt(value: float) -> str:
    return f"{value:g}"


def _finish(result: EstimateResult) -> EstimateResult:
    """Round every component and recompute the total from the rounded parts."""
    for field in ("base_fare", "km_cost", "extra_km_cost", "waiting_cost", "driver_cost", "night_cost"):
        setattr(result, field, _money(getattr(result, field)))
    result.total = round(
        result.base_fare + result.km_cost + result.extra_km_cost
        + result.waiting_cost + result.driver_cost + result.night_cost,
        2,
    )
    result.chargeable_km = _money(result.chargeable_km)
    result.min_km = _money(result.min_km)
    return result


@runtime_checkable
class FareCalculatorInterface(Protocol):
    """
    Interface for fare calculation.
    Every calculator takes one trip, the resolved rate tables and the
    resolved package catalog, and returns an itemized estimate.
    """

    def calculate(
        self,
        request: TripRequest,
        rules: RuleTables,
        packages: Iterable[RentalPackage],
    ) -> EstimateResult:
        ...


class BaseFareCalculator(ABC):
    """Dispatches a trip to the pricing method for its category."""

    def calculate(
        self,
        request: TripRequest,
        rules: RuleTables,
        packages: Iterable[RentalPackage],
    ) -> EstimateResult:
        """
        Calculate the estimate for one trip.

        Args:
            request: trip category, vehicle class and measured quantities
            rules: a single rate table, or rate tables keyed by vehicle class
            packages: rental package catalog for the same scope

        Returns:
            EstimateResult with rounded, non-negative components
        """
        if isinstance(rules, PricingRules):
            table = rules
        else:
            table = rules.get(request.vehicle_class) or PricingRules()

        if request.trip_category == TripCategory.LOCAL:
            result = self.calculate_local(request, table)
        elif request.trip_category == TripCategory.RENTAL:
            result = self.calculate_rental(request, list(packages))
        elif request.outstation_sub_type == OutstationSubType.ONE_WAY:
            result = self.calculate_outstation_one_way(request, table)
        else:
            result = self.calculate_outstation_round_trip(request, table)
        return _finish(result)

    @abstractmethod
    def calculate_local(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        pass

    @abstractmethod
    def calculate_rental(self, request: TripRequest, packages: list) -> EstimateResult:
        pass

    @abstractmethod
    def calculate_outstation_round_trip(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        pass

    @abstractmethod
    def calculate_outstation_one_way(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        pass


class TripFareCalculator(BaseFareCalculator):
    """
    Concrete calculator for Local, Rental and Outstation trips.
    Pure: no I/O, the caller supplies resolved configuration.
    """

    def calculate_local(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        extra_km = max(0.0, request.estimated_km - rules.local_base_km)
        extra_km_cost = extra_km * rules.local_per_km_rate
        waiting_cost = request.waiting_minutes * rules.local_waiting_rate
        cur = settings.CURRENCY_SYMBOL
        return EstimateResult(
            trip_category=TripCategory.LOCAL,
            vehicle_class=request.vehicle_class,
            base_fare=rules.local_base_fare,
            extra_km_cost=extra_km_cost,
            waiting_cost=waiting_cost,
            details=(
                f"Base ({_fmt(rules.local_base_km)}km): {cur}{rules.local_base_fare:.2f}"
                f" + Extra: {cur}{extra_km_cost:.2f} + Wait: {cur}{waiting_cost:.2f}"
            ),
        )

    def calculate_rental(self, request: TripRequest, packages: list) -> EstimateResult:
        # Flat package price; distance and time inputs are ignored
        package = next((p for p in packages if request.package_id and p.id == request.package_id), None)
        if package is None:
            return EstimateResult(
                trip_category=TripCategory.RENTAL,
                vehicle_class=request.vehicle_class,
                details="Select a package",
            )
        return EstimateResult(
            trip_category=TripCategory.RENTAL,
            vehicle_class=request.vehicle_class,
            base_fare=package.price_for(request.vehicle_class),
            package_name=package.name,
            details=f"Package: {package.name}",
        )

    def calculate_outstation_round_trip(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        # Always billed for at least the committed per-day distance
        min_km = rules.outstation_min_km_per_day * request.days
        chargeable_km = max(request.estimated_total_km, min_km)
        cur = settings.CURRENCY_SYMBOL
        return EstimateResult(
            trip_category=TripCategory.OUTSTATION,
            outstation_sub_type=OutstationSubType.ROUND_TRIP,
            vehicle_class=request.vehicle_class,
            km_cost=chargeable_km * rules.outstation_extra_km_rate,
            driver_cost=rules.outstation_driver_allowance * request.days,
            night_cost=rules.outstation_night_allowance * request.nights,
            chargeable_km=chargeable_km,
            min_km=min_km,
            details=(
                f"Min {_fmt(min_km)}km. Charged {_fmt(chargeable_km)}km"
                f" @ {cur}{_fmt(rules.outstation_extra_km_rate)}/km."
            ),
        )

    def calculate_outstation_one_way(self, request: TripRequest, rules: PricingRules) -> EstimateResult:
        # Every km is chargeable on top of the flat one-way base; no night allowance
        km_cost = request.estimated_total_km * rules.outstation_extra_km_rate
        cur = settings.CURRENCY_SYMBOL
        return EstimateResult(
            trip_category=TripCategory.OUTSTATION,
            outstation_sub_type=OutstationSubType.ONE_WAY,
            vehicle_class=request.vehicle_class,
            base_fare=rules.outstation_base_rate_one_way,
            km_cost=km_cost,
            driver_cost=rules.outstation_driver_allowance * request.days,
            chargeable_km=request.estimated_total_km,
            details=(
                f"Base: {cur}{rules.outstation_base_rate_one_way:.2f}"
                f" + Km: {cur}{km_cost:.2f} ({_fmt(request.estimated_total_km)}km"
                f" @ {cur}{_fmt(rules.outstation_extra_km_rate)}/km)"
            ),
        )


# Singleton instance for default calculator
_default_calculator: Optional[FareCalculatorInterface] = None


def get_fare_calculator() -> FareCalculatorInterface:
    """
    Get the default fare calculator instance (Singleton pattern).

    Returns:
        Fare calculator instance implementing FareCalculatorInterface
    """
    global _default_calculator
    if _default_calculator is None:
        _default_calculator = TripFareCalculator()
    return _default_calculator


def calculate_fare(
    request: TripRequest,
    rules: RuleTables,
    packages: Iterable[RentalPackage],
) -> EstimateResult:
    """Estimate one trip with the default calculator."""
    return get_fare_calculator().calculate(request, rules, packages)


def estimate_for_scope(request: TripRequest, owner_id: str, branch_name: str, resolver=None) -> EstimateResult:
    """Resolve the scope's configuration and estimate the trip against it."""
    if resolver is None:
        from fleetfare.services.config_resolver import get_config_resolver
        resolver = get_config_resolver()
    rules = resolver.resolve_pricing(owner_id, branch_name)
    packages = resolver.resolve_packages(owner_id, branch_name)
    return calculate_fare(request, rules, packages)
