"""Linux host scanner for rootkit, persistence and tampering indicators."""

__version__ = "0.1.1"