"""Referral graph and multi-level commission engine."""

__version__ = "0.1.0"
