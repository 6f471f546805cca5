"""Stable cross-run identity for test results."""

from histreport.identity.resolver import IdentityResolver, md5, validate_identity_fields

__all__ = [
    "IdentityResolver",
    "md5",
    "validate_identity_fields",
]
