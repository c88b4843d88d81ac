"""Incremental harvester for infinite-scroll social feeds."""

__version__ = "0.1.0"
