"""satrelay - LEO constellation packet relay simulator."""

__version__ = "0.1.0"
