"""
extpolicy: allow-list enforcement for VS Code extensions.

Keeps a per-user or machine-wide allow-map of extension identifiers and
removes installed extensions that the map does not permit.
"""

__version__ = "0.3.0"
