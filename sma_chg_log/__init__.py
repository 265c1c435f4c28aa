"""Export EV charging events and sessions from an SMA ennexOS device as JSON, CSV or PDF."""

__version__ = "0.1.0"