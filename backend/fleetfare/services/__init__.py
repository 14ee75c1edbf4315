"""Services package for the fleet fare system."""

from .config_resolver import (
    ConfigResolver,
    get_config_resolver,
)
from .distance import (
    DistanceProvider,
    DistanceRequestGuard,
    GoogleDistanceMatrixProvider,
    get_distance_provider,
    trip_distance,
)
from .fare_calculator import (
    FareCalculatorInterface,
    TripFareCalculator,
    calculate_fare,
    estimate_for_scope,
    get_fare_calculator,
)

__all__ = [
    'ConfigResolver',
    'get_config_resolver',
    'DistanceProvider',
    'DistanceRequestGuard',
    'GoogleDistanceMatrixProvider',
    'get_distance_provider',
    'trip_distance',
    'FareCalculatorInterface',
    'TripFareCalculator',
    'calculate_fare',
    'estimate_for_scope',
    'get_fare_calculator',
]
