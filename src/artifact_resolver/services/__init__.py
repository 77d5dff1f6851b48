"""Application services exposed to the CLI and other callers."""

from artifact_resolver.services.bootstrap import BootstrapService
from artifact_resolver.services.image_metadata import ImageMetadataService, RefreshReport

__all__ = ["BootstrapService", "ImageMetadataService", "RefreshReport"]
