"""Extraction pipeline services: variations, reconciliation, scoring, usage logging and orchestration."""
