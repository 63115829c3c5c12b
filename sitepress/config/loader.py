"""Load site configuration YAML into typed dataclasses."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from sitepress._constants import CONFIG_FILENAME
from sitepress.errors import ConfigurationError

from .models import SiteConfig, TransformRule, TransformStep

_FOLDER_KEYS = (
    "pages",
    "layouts",
    "fragments",
    "helpers",
    "data",
    "locales",
    "collections",
)


def load_site_config(
    input_root: Path,
    *,
    config_path: Path | None = None,
    overrides: typ.Mapping[str, typ.Any] | None = None,
) -> SiteConfig:
    """Load the YAML configuration describing a site's folders and options.

    Parameters
    ----------
    input_root : Path
        Project folder holding ``pages/``, ``layouts/`` and friends.
    config_path : Path, optional
        Explicit configuration file. When omitted, ``sitepress.yaml`` inside
        ``input_root`` is used if present; a site without one runs on
        defaults.
    overrides : Mapping[str, Any], optional
        Values that win over the file, typically CLI flags. ``None`` values
        are ignored.

    Returns
    -------
    SiteConfig
        Parsed and validated site configuration.

    Raises
    ------
    ConfigurationError
        If the input or pages directory is missing, an explicit
        ``config_path`` does not exist, the YAML cannot be parsed, or a value
        has the wrong shape.

    Examples
    --------
    >>> from pathlib import Path
    >>> from sitepress.config import load_site_config
    >>> site = load_site_config(Path("src"))  # doctest: +SKIP
    >>> site.pages_root  # doctest: +SKIP
    PosixPath('src/pages')
    """
    raw = _read_config_file(input_root, config_path)
    if overrides:
        raw.update({key: value for key, value in overrides.items() if value is not None})

    folders = {key: str(raw[key]) for key in _FOLDER_KEYS if raw.get(key)}
    config = SiteConfig(
        input_root=input_root,
        engine=str(raw.get("engine", "jinja")),
        page_layouts=_build_page_layouts(raw.get("page_layouts")),
        default_locale=_optional_str(raw.get("default_locale")),
        plugins=_build_plugins(raw.get("plugins")),
        transforms=_build_transforms(raw.get("transforms")),
        transform_failures=raw.get("transform_failures", "isolate"),
        page_extension=str(raw.get("page_extension", ".html")),
        builtins=bool(raw.get("builtins", True)),
        source_pattern=str(raw.get("source_pattern", "**/*.*")),
        **folders,
    )
    config.validate()
    return config


def _read_config_file(input_root: Path, config_path: Path | None) -> dict[str, typ.Any]:
    """Return the raw mapping stored in the configuration file, if any."""
    if config_path is None:
        candidate = input_root / CONFIG_FILENAME
        if not candidate.is_file():
            return {}
        config_path = candidate
    elif not config_path.is_file():
        msg = f"Configuration file '{config_path}' not found."
        raise ConfigurationError(msg)

    loader = YAML(typ="safe")
    loader.version = (1, 2)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = loader.load(handle) or {}
    except YAMLError as exc:
        msg = f"Configuration file '{config_path}' is not valid YAML: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(loaded, dict):
        msg = "Top-level YAML structure must be a mapping."
        raise ConfigurationError(msg)
    return dict(loaded)


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build_page_layouts(value: object) -> dict[str, str]:
    """Normalize the folder-to-layout mapping, stripping slashes from keys."""
    match value:
        case None:
            return {}
        case dict():
            return {
                str(folder).strip("/"): str(layout) for folder, layout in value.items()
            }
        case _:
            msg = "'page_layouts' must map folder names to layout names."
            raise ConfigurationError(msg)


def _build_plugins(value: object) -> list[str]:
    match value:
        case None:
            return []
        case str():
            return [value]
        case list():
            return [str(entry) for entry in value]
        case _:
            msg = "'plugins' must be a module name or a list of module names."
            raise ConfigurationError(msg)


def _build_step(value: object) -> TransformStep:
    """Build a TransformStep from ``"name"`` or ``[name, *args]``."""
    match value:
        case str():
            return TransformStep(name=value)
        case [str() as name, *args]:
            return TransformStep(name=name, args=tuple(args))
        case _:
            msg = f"Invalid transform step {value!r}; use a name or [name, args...]."
            raise ConfigurationError(msg)


def _build_steps(value: object) -> list[TransformStep]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    return [_build_step(entry) for entry in value]


def _build_transforms(value: object) -> dict[str, TransformRule]:
    """Build per-extension transform rules.

    A bare list of steps for an extension is shorthand for ``before``.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = "'transforms' must map file extensions to transform rules."
        raise ConfigurationError(msg)
    rules: dict[str, TransformRule] = {}
    for extension, payload in value.items():
        suffix = str(extension)
        if not suffix.startswith("."):
            suffix = f".{suffix}"
        match payload:
            case dict():
                rules[suffix] = TransformRule(
                    before=_build_steps(payload.get("before")),
                    after=_build_steps(payload.get("after")),
                )
            case _:
                rules[suffix] = TransformRule(before=_build_steps(payload))
    return rules


__all__ = ["load_site_config"]
