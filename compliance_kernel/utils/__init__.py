"""Utility functions for the compliance kernel."""

from compliance_kernel.utils.hashing import canonicalize_json, hash_payload

__all__ = ["canonicalize_json", "hash_payload"]
