"""cwop.rest: relay weather observations from HTTP to CWOP/APRS-IS."""

__version__ = "1.0"
