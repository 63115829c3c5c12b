"""Load and validate site configuration for sitepress builds.

This subpackage parses an optional ``sitepress.yaml`` file from the project
folder, applies overrides supplied by the CLI, and produces a
:class:`SiteConfig` that the pipeline consumes. The primary entry point is
:func:`load_site_config`, which checks the required input folders exist and
raises :class:`~sitepress.errors.ConfigurationError` otherwise.

Examples
--------
>>> from pathlib import Path
>>> from sitepress.config import load_site_config
>>> site = load_site_config(Path("src"), overrides={"engine": "jinja"})  # doctest: +SKIP
>>> site.layouts_root  # doctest: +SKIP
PosixPath('src/layouts')
"""

from .loader import load_site_config
from .models import (
    TRANSFORM_FAILURE_POLICIES,
    SiteConfig,
    TransformFailurePolicy,
    TransformRule,
    TransformStep,
)

__all__ = [
    "TRANSFORM_FAILURE_POLICIES",
    "SiteConfig",
    "TransformFailurePolicy",
    "TransformRule",
    "TransformStep",
    "load_site_config",
]
