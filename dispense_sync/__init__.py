"""
Dispense sync: pending dispense records from the store to a downstream HTTP endpoint.
"""

__version__ = "0.1.0"
