"""Gatehouse - role, permission and module access control.

Roles, system modules and authorized users stored in a document database,
plus the evaluator and guards that decide who may reach a protected view.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
