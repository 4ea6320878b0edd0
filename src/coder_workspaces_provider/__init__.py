"""Crossplane-style provider that reconciles Coder workspaces."""

__version__ = "0.1.0"
