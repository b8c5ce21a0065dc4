"""Registry — authoritative bookkeeping for package registrations.

The registry provides:
- Validation: reject uploads whose metadata breaks registry limits
- Registration: find or create the package id an upload belongs to
- Versioning: immutable version records and latest / latest-stable flags
- Ownership: token-gated co-ownership requests
- Directory: lookups by id, version, owner and reverse dependency
"""
