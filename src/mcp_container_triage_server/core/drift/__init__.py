"""Drift detection package."""

from __future__ import annotations

from .compose import ComposeFile, ComposeService, DeployConfig, load_compose_file, parse_compose
from .detector import detect_drift, image_matches, match_service, normalize_image

__all__ = [
    "ComposeFile",
    "ComposeService",
    "DeployConfig",
    "detect_drift",
    "image_matches",
    "load_compose_file",
    "match_service",
    "normalize_image",
    "parse_compose",
]
