"""Operational command line tools for division brackets."""
