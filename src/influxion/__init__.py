"""Influxion - incremental upload of agent sessions and skills."""

__version__ = "0.3.0"
