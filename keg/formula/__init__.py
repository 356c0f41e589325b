"""Formula (package release descriptor) models and loading."""

from .descriptor import (
    PackageReleaseDescriptor,
    PlatformArtifact,
    ResolvedArtifact,
    SmokeTest,
    current_platform,
    url_filename,
)
from .loader import available_formulas, find_formula, load_descriptor

__all__ = [
    "PackageReleaseDescriptor",
    "PlatformArtifact",
    "ResolvedArtifact",
    "SmokeTest",
    "available_formulas",
    "current_platform",
    "find_formula",
    "load_descriptor",
    "url_filename",
]
