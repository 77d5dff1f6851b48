"""Resolve the cloud spec a lookup is scoped to, or declare it unconstrained."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.domain.errors import ScopeUndeterminableError
from artifact_resolver.providers.base import HasRegion

if TYPE_CHECKING:
    from artifact_resolver.domain.models import CloudSpec
    from artifact_resolver.providers.base import Provider


class CloudSpecFilter:
    """
    Narrow lookups to the provider's region/endpoint pair.

    ``resolve`` returns a ``CloudSpec`` when the provider reports one and
    ``None`` (unconstrained) when it cannot but the caller tolerates that.
    """

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def resolve(self, provider: Provider, *, require_scope: bool) -> CloudSpec | None:
        if isinstance(provider, HasRegion):
            try:
                spec = provider.region()
            except Exception as exc:  # noqa: BLE001 - any region failure blocks scoping
                raise ScopeUndeterminableError(
                    f"getting provider region information (cloud spec): {exc}"
                ) from exc
            self._logger.debug(
                "cloud_spec_resolved", region=spec.region, endpoint=spec.endpoint
            )
            return spec

        if require_scope:
            raise ScopeUndeterminableError()
        self._logger.debug("cloud_spec_unconstrained", provider=provider.config().label)
        return None


__all__ = ["CloudSpecFilter"]
