"""Propensity-adjusted SATT estimation for simulated medical-practice panels."""

__version__ = "1.0.0"
