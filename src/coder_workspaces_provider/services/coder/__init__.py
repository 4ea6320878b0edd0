"""Coder API client and workspace operations."""
