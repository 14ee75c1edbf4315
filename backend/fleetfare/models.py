"""Models for the fleet fare configuration and estimation service."""

import math
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fleetfare.config import settings


def coerce_amount(value: Any) -> float:
    """
    Read a numeric field the way the dashboard forms produce them.
    Empty strings, None, garbage, NaN, infinities and negatives all read as 0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def _rename_legacy_keys(data: Any, legacy_names: Dict[str, str]) -> Any:
    if not isinstance(data, dict):
        return data
    renamed = dict(data)
    for legacy, current in legacy_names.items():
        if legacy in renamed and current not in renamed:
            renamed[current] = renamed.pop(legacy)
    return renamed


class VehicleClass(str, Enum):
    """Vehicle classes with their own rate tables."""
    SEDAN = "Sedan"
    SUV = "SUV"


class TripCategory(str, Enum):
    LOCAL = "Local"
    RENTAL = "Rental"
    OUTSTATION = "Outstation"


class OutstationSubType(str, Enum):
    ONE_WAY = "OneWay"
    ROUND_TRIP = "RoundTrip"


class ConfigKind(str, Enum):
    """Kinds of configuration stored per scope."""
    PRICING = "pricing"
    PACKAGES = "packages"


class ScopeKey(BaseModel):
    """
    The (owner, branch) pair used to look up pricing configuration.
    The reserved branch name "Global" means owner-wide default.
    """
    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(..., description="Head office or corporate account id")
    branch_name: str = Field(settings.GLOBAL_BRANCH, description="Branch name or 'Global'")

    @field_validator("owner_id", mode="before")
    @classmethod
    def normalize_owner(cls, v):
        owner = str(v).strip() if v is not None else ""
        return owner or settings.HEAD_OFFICE_OWNER

    @field_validator("branch_name", mode="before")
    @classmethod
    def normalize_branch(cls, v):
        branch = str(v).strip() if v is not None else ""
        if not branch or branch.lower() == settings.GLOBAL_BRANCH.lower():
            return settings.GLOBAL_BRANCH
        return branch

    @classmethod
    def of(cls, owner_id: Optional[str], branch_name: Optional[str] = None) -> "ScopeKey":
        return cls(owner_id=owner_id, branch_name=branch_name)

    @property
    def is_global(self) -> bool:
        return self.branch_name == settings.GLOBAL_BRANCH

    def parent(self) -> Optional["ScopeKey"]:
        """Owner-wide scope this branch falls back to, None for Global itself."""
        if self.is_global:
            return None
        return ScopeKey(owner_id=self.owner_id, branch_name=settings.GLOBAL_BRANCH)

    def storage_key(self, kind: ConfigKind) -> str:
        """Deterministic store key for one kind of configuration at this scope."""
        owner = quote(self.owner_id, safe="@.-_")
        branch = quote(self.branch_name, safe="@.-_")
        return f"{ConfigKind(kind).value}:{owner}:{branch}"


# Keys written by the original dashboard screens
LEGACY_RULE_NAMES = {
    "localBaseFare": "local_base_fare",
    "localBaseKm": "local_base_km",
    "localPerKmRate": "local_per_km_rate",
    "localWaitingRate": "local_waiting_rate",
    "rentalExtraKmRate": "rental_extra_km_rate",
    "rentalExtraHrRate": "rental_extra_hr_rate",
    "outstationMinKmPerDay": "outstation_min_km_per_day",
    "outstationBaseRateOneWay": "outstation_base_rate_one_way",
    "outstationBaseRate": "outstation_base_rate_one_way",
    "outstationExtraKmRate": "outstation_extra_km_rate",
    "outstationDriverAllowance": "outstation_driver_allowance",
    "outstationNightAllowance": "outstation_night_allowance",
}


class PricingRules(BaseModel):
    """Rate table for one vehicle class at one scope."""

    # Local
    local_base_fare: float = 0.0
    local_base_km: float = 0.0
    local_per_km_rate: float = 0.0
    local_waiting_rate: float = 0.0
    # Rental
    rental_extra_km_rate: float = 0.0
    rental_extra_hr_rate: float = 0.0
    # Outstation
    outstation_min_km_per_day: float = 0.0
    outstation_base_rate_one_way: float = 0.0
    outstation_extra_km_rate: float = 0.0
    outstation_driver_allowance: float = 0.0
    outstation_night_allowance: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_names(cls, data):
        return _rename_legacy_keys(data, LEGACY_RULE_NAMES)

    @field_validator("*", mode="before")
    @classmethod
    def non_negative(cls, v):
        return coerce_amount(v)


PricingRuleSet = Dict[VehicleClass, PricingRules]


class RentalPackage(BaseModel):
    """A flat-priced hours/km rental package."""
    id: str = Field(..., min_length=1)
    name: str = ""
    hours: float = 0.0
    km: float = 0.0
    price_sedan: float = 0.0
    price_suv: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_names(cls, data):
        return _rename_legacy_keys(data, {"priceSedan": "price_sedan", "priceSuv": "price_suv"})

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v):
        return str(v).strip() if v is not None else ""

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v):
        return str(v).strip() if v is not None else ""

    @field_validator("hours", "km", "price_sedan", "price_suv", mode="before")
    @classmethod
    def non_negative(cls, v):
        return coerce_amount(v)

    def price_for(self, vehicle_class: VehicleClass) -> float:
        if VehicleClass(vehicle_class) == VehicleClass.SEDAN:
            return self.price_sedan
        return self.price_suv


class PackageInput(BaseModel):
    """Fields an operator supplies when adding or editing a package."""
    name: str = Field(..., min_length=1)
    hours: float = 0.0
    km: float = 0.0
    price_sedan: float = 0.0
    price_suv: float = 0.0

    @field_validator("hours", "km", "price_sedan", "price_suv", mode="before")
    @classmethod
    def non_negative(cls, v):
        return coerce_amount(v)


class TripRequest(BaseModel):
    """Trip parameters collected by the booking screens."""
    trip_category: TripCategory
    outstation_sub_type: OutstationSubType = OutstationSubType.ROUND_TRIP
    vehicle_class: VehicleClass = VehicleClass.SEDAN
    # Local
    estimated_km: float = 0.0
    waiting_minutes: float = 0.0
    # Rental
    package_id: Optional[str] = None
    # Outstation (round-trip distance is already doubled by the caller)
    estimated_total_km: float = 0.0
    days: float = 1.0
    nights: float = 0.0

    @field_validator("estimated_km", "waiting_minutes", "estimated_total_km", "nights", mode="before")
    @classmethod
    def non_negative(cls, v):
        return coerce_amount(v)

    @field_validator("package_id", mode="before")
    @classmethod
    def normalize_package_id(cls, v):
        return str(v).strip() if v is not None else None

    @field_validator("days", mode="before")
    @classmethod
    def at_least_one_day(cls, v):
        return max(1.0, coerce_amount(v))


class EstimateResult(BaseModel):
    """Itemized fare estimate."""
    trip_category: TripCategory
    outstation_sub_type: Optional[OutstationSubType] = None
    vehicle_class: VehicleClass
    base_fare: float = 0.0
    km_cost: float = 0.0
    extra_km_cost: float = 0.0
    waiting_cost: float = 0.0
    driver_cost: float = 0.0
    night_cost: float = 0.0
    total: float = 0.0
    chargeable_km: float = 0.0
    min_km: float = 0.0
    package_name: Optional[str] = None
    details: str = ""


class ConfigPayload(BaseModel):
    """Pricing rules and package catalog saved together at one scope."""
    pricing: Dict[VehicleClass, PricingRules]
    packages: List[RentalPackage] = Field(default_factory=list)


class ResolvedConfig(ConfigPayload):
    """Effective configuration for a scope and where it came from."""
    owner_id: str
    branch_name: str
    pricing_source: str = Field(..., description="branch, global or default")
    packages_source: str = Field(..., description="branch, global or default")


class EstimateRequest(BaseModel):
    """Request model for estimating a trip at a tenant scope."""
    owner_id: str = ""
    branch_name: str = settings.GLOBAL_BRANCH
    trip: TripRequest


class DistanceRequest(BaseModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    round_trip: bool = False


class DistanceResponse(BaseModel):
    """Distance lookup outcome; km is None when the caller must type it in."""
    km: Optional[float] = None
    warning: Optional[str] = None
    retryable: bool = False
