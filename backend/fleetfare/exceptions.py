"""Exceptions raised by the fleet fare service."""


class FleetFareError(Exception):
    """Base exception for fleet fare errors."""


class ConfigStoreError(FleetFareError):
    """The configuration store could not persist a value."""


class PackageNotFoundError(FleetFareError):
    """A rental package edit referenced an id missing from the catalog."""

    def __init__(self, package_id: str):
        super().__init__(f"Rental package '{package_id}' not found")
        self.package_id = package_id


class DistanceLookupError(FleetFareError):
    """Base class for distance provider failures."""

    retryable = False


class DistanceQuotaError(DistanceLookupError):
    """
    Billing, quota or credential denial from the maps provider.
    Not retryable; callers should show a degraded-mode warning and
    accept manually entered kilometres.
    """


class DistanceUnavailableError(DistanceLookupError):
    """Transient provider failure (network, timeout, no route)."""

    retryable = True
