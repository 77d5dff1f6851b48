"""
artifact-resolver — published-artifact resolution and reconciliation.

Purpose
- Resolve cloud image metadata and agent tool binaries from ordered, untrusted
  data sources and reconcile them into a persistent catalog.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
