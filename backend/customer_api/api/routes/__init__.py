"""Collection of API route modules."""

__all__ = [
    "customers",
]
