"""HTTP API for the fleet fare service."""
