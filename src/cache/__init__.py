"""Fingerprint-validated in-memory caches."""
