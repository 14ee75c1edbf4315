"""API endpoints for pricing configuration and fare estimation."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from fleetfare.database import get_db_manager
from fleetfare.exceptions import (
    ConfigStoreError,
    DistanceQuotaError,
    DistanceUnavailableError,
    PackageNotFoundError,
)
from fleetfare.models import (
    ConfigPayload,
    DistanceRequest,
    DistanceResponse,
    EstimateRequest,
    EstimateResult,
    PackageInput,
    RentalPackage,
    ResolvedConfig,
)
from fleetfare.services import (
    ConfigResolver,
    DistanceProvider,
    FareCalculatorInterface,
    get_config_resolver,
    get_distance_provider,
    get_fare_calculator,
    trip_distance,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Fare Estimation"])


def get_calculator() -> FareCalculatorInterface:
    """
    Dependency injection for fare calculator.
    Returns any implementation of FareCalculatorInterface.
    """
    return get_fare_calculator()


def get_resolver() -> ConfigResolver:
    """Dependency injection for the config resolver."""
    return get_config_resolver()


def get_distance() -> DistanceProvider:
    """Dependency injection for the distance provider."""
    return get_distance_provider()


def _store_unavailable(e: ConfigStoreError) -> HTTPException:
    logger.error("Configuration store write failed: %s", e)
    return HTTPException(status_code=503, detail=str(e))


@router.get("/config/{owner_id}/{branch_name}", response_model=ResolvedConfig)
def get_config(owner_id: str, branch_name: str, resolver: ConfigResolver = Depends(get_resolver)):
    """
    Effective pricing rules and packages for a scope.

    pricing_source / packages_source tell the screen whether the values
    are the branch's own, the owner's Global ones, or built-in defaults.
    """
    return resolver.describe_scope(owner_id, branch_name)


@router.put("/config/{owner_id}/{branch_name}", response_model=ResolvedConfig)
def save_config(
    owner_id: str,
    branch_name: str,
    payload: ConfigPayload,
    resolver: ConfigResolver = Depends(get_resolver),
):
    """Save rules and packages at exactly this scope."""
    try:
        resolver.save_config(owner_id, branch_name, payload.pricing, payload.packages)
    except ConfigStoreError as e:
        raise _store_unavailable(e)
    return resolver.describe_scope(owner_id, branch_name)


@router.post("/config/{owner_id}/{branch_name}/packages", response_model=RentalPackage, status_code=201)
def add_package(
    owner_id: str,
    branch_name: str,
    package: PackageInput,
    resolver: ConfigResolver = Depends(get_resolver),
):
    try:
        return resolver.add_package(owner_id, branch_name, package)
    except ConfigStoreError as e:
        raise _store_unavailable(e)


@router.put("/config/{owner_id}/{branch_name}/packages/{package_id}", response_model=RentalPackage)
def update_package(
    owner_id: str,
    branch_name: str,
    package_id: str,
    package: PackageInput,
    resolver: ConfigResolver = Depends(get_resolver),
):
    try:
        return resolver.update_package(owner_id, branch_name, package_id, package)
    except PackageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigStoreError as e:
        raise _store_unavailable(e)


@router.delete("/config/{owner_id}/{branch_name}/packages/{package_id}", response_model=List[RentalPackage])
def remove_package(
    owner_id: str,
    branch_name: str,
    package_id: str,
    resolver: ConfigResolver = Depends(get_resolver),
):
    """Remove a package; returns the scope's catalog afterwards."""
    try:
        resolver.remove_package(owner_id, branch_name, package_id)
    except PackageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigStoreError as e:
        raise _store_unavailable(e)
    return resolver.resolve_packages(owner_id, branch_name)


@router.post("/estimate", response_model=EstimateResult)
def estimate(
    request: EstimateRequest,
    resolver: ConfigResolver = Depends(get_resolver),
    calculator: FareCalculatorInterface = Depends(get_calculator),
) -> EstimateResult:
    """
    Estimate a trip using the configuration in effect for the scope.

    Args:
        request: scope plus trip parameters
        resolver: injected config resolver
        calculator: injected fare calculator implementing FareCalculatorInterface

    Returns:
        Itemized EstimateResult
    """
    rules = resolver.resolve_pricing(request.owner_id, request.branch_name)
    packages = resolver.resolve_packages(request.owner_id, request.branch_name)
    return calculator.calculate(request.trip, rules, packages)


@router.post("/distance", response_model=DistanceResponse)
async def distance(request: DistanceRequest, provider: DistanceProvider = Depends(get_distance)):
    """
    Driving distance for a trip, doubled for round trips.

    Provider failures come back as warnings with km = null so the
    operator can type the distance in by hand.
    """
    try:
        km = await trip_distance(provider, request.origin, request.destination, request.round_trip)
    except DistanceQuotaError as e:
        return DistanceResponse(warning=f"{e} Enter the distance manually.", retryable=False)
    except DistanceUnavailableError as e:
        return DistanceResponse(warning=f"{e}. Retry or enter the distance manually.", retryable=True)
    return DistanceResponse(km=km)


@router.get("/health")
def health_check():
    """Health check endpoint including datastore status."""
    datastore_status = "healthy"
    entries = 0
    try:
        entries = get_db_manager().ping()
    except Exception as e:
        datastore_status = f"unhealthy: {str(e)}"

    return {
        "status": "healthy",
        "service": "Fleet Fare Service",
        "datastore_status": datastore_status,
        "config_entries": entries,
    }
