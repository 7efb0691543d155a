"""Shodan-driven census of ransomware-infected hosts."""

__version__ = "1.0.0"
