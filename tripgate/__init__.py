"""TripGate: guest verification and authorization for shared trip plans."""

__version__ = "0.1.0"
