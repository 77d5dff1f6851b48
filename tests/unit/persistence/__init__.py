"""Persistence tests: state DB, catalog store, and binary store."""
