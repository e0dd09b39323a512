"""Quarry command line interface."""
