"""
artifact-resolver — integration test package

Purpose
- Exercise services end to end against a real SQLite catalog and on-disk documents.

Functional requirements
- Must not trigger network access.
"""
