"""Gallery core — registration, version and ownership bookkeeping for a package registry."""

__version__ = "0.1.0"
