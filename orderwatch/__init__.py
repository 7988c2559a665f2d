"""
OrderWatch - order metrics aggregation and live monitoring for a
restaurant point-of-sale dashboard.
"""

__version__ = "0.1.0"
