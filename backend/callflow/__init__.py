"""Call-flow segment graph versioning service."""
