"""Customer records API and client-side list cache for the M365 assessment portal."""

__all__ = [
    "api",
    "client",
    "core",
    "db",
    "models",
    "repos",
    "schemas",
]
