"""Database schema migrations for the state store."""
