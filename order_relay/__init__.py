"""Incremental order sync: upstream orders -> document store -> change broadcast."""

__version__ = "0.3.0"
