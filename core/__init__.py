"""Changelog crawler core: adapters, classifier, refresh controller, orchestrator."""

__version__ = "0.3.0"
