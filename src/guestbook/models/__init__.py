"""Persisted records."""
