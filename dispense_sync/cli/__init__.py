"""
Command-line entry points: ``dispense-sync`` and ``dispense-admin``.
"""
