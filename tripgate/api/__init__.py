"""HTTP API routers for TripGate."""
