"""Scan supporting folders into the maps a render-context snapshot holds.

Each loader reads one folder and returns plain dictionaries. A file that
cannot be read or parsed is logged and skipped; it never aborts the scan of
its siblings. Loaders run in worker threads during a refresh, so they only
touch the filesystem and their own return values.
"""

from __future__ import annotations

import collections.abc as cabc
import json
import logging
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ._constants import DATA_SUFFIXES, ROOT_DATA_NAME, TEMPLATE_SUFFIXES
from ._merge import deep_merge
from .context import CollectionDefinition
from .errors import AssetLoadError

logger = logging.getLogger(__name__)


def register_asset(
    table: dict[str, typ.Any], name: str, value: typ.Any, *, kind: str
) -> None:
    """Register ``value`` under ``name``, unregistering any previous entry first.

    The last registration of a name wins.
    """
    if name in table:
        logger.debug("Replacing %s '%s'", kind, name)
        del table[name]
    table[name] = value


def _iter_files(root: Path, suffixes: cabc.Collection[str]) -> list[Path]:
    """Return files under ``root`` with one of ``suffixes``, sorted by path."""
    if not root.is_dir():
        return []
    return sorted(
        path for path in root.rglob("*") if path.is_file() and path.suffix in suffixes
    )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise AssetLoadError(path, str(exc)) from exc


def read_templates(
    root: Path, *, kind: str, nested_names: bool = False
) -> dict[str, str]:
    """Return template sources under ``root`` keyed by name.

    Parameters
    ----------
    root : Path
        Folder to scan recursively.
    kind : str
        Label used in log messages (``"layout"``, ``"fragment"``).
    nested_names : bool, optional
        When ``True`` the name is the POSIX path relative to ``root`` without
        its extension (``"nav/top"``); otherwise it is the file stem.

    Returns
    -------
    dict[str, str]
        Template sources; unreadable files are skipped with a warning.
    """
    templates: dict[str, str] = {}
    for path in _iter_files(root, TEMPLATE_SUFFIXES):
        if nested_names:
            name = path.relative_to(root).with_suffix("").as_posix()
        else:
            name = path.stem
        try:
            source = _read_text(path)
        except AssetLoadError as exc:
            logger.warning("Skipping %s: %s", kind, exc)
            continue
        register_asset(templates, name, source, kind=kind)
    return templates


def load_data_file(path: Path) -> typ.Any:
    """Parse one JSON or YAML data file.

    Raises
    ------
    AssetLoadError
        If the file cannot be read or parsed.
    """
    text = _read_text(path)
    if path.suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise AssetLoadError(path, f"invalid JSON: {exc}") from exc
    loader = YAML(typ="safe")
    loader.version = (1, 2)
    try:
        return loader.load(text)
    except YAMLError as exc:
        raise AssetLoadError(path, f"invalid YAML: {exc}") from exc


def load_data(root: Path) -> dict[str, typ.Any]:
    """Return global data keyed by file stem.

    A file named ``data`` (``data.yml``, ``data.json``) contributes its keys to
    the top level instead of being nested under ``"data"``.
    """
    data: dict[str, typ.Any] = {}
    for path in _iter_files(root, DATA_SUFFIXES):
        try:
            contents = load_data_file(path)
        except AssetLoadError as exc:
            logger.warning("Skipping data file: %s", exc)
            continue
        if path.stem == ROOT_DATA_NAME and isinstance(contents, dict):
            data = deep_merge(data, contents)
        else:
            register_asset(data, path.stem, contents, kind="data")
    return data


def _load_data_tree(folder: Path) -> dict[str, typ.Any]:
    """Return a folder's data files as a mapping nested by subfolder."""
    tree: dict[str, typ.Any] = {}
    for child in sorted(folder.iterdir()):
        if child.is_dir():
            tree[child.name] = _load_data_tree(child)
        elif child.suffix in DATA_SUFFIXES:
            try:
                contents = load_data_file(child)
            except AssetLoadError as exc:
                logger.warning("Skipping locale file: %s", exc)
                continue
            if child.stem == ROOT_DATA_NAME and isinstance(contents, dict):
                tree = deep_merge(tree, contents)
            else:
                tree[child.stem] = contents
    return tree


def load_locales(root: Path) -> tuple[tuple[str, ...], dict[str, typ.Any]]:
    """Return the locale names under ``root`` and each locale's translations.

    Every child folder is a locale whose data tree is its translation table.
    A data file directly under ``root`` (``jp.yml``) is also a locale.

    Examples
    --------
    >>> load_locales(Path("missing"))
    ((), {})
    """
    if not root.is_dir():
        return (), {}
    tables: dict[str, typ.Any] = {}
    for child in sorted(root.iterdir()):
        if child.is_dir():
            tables[child.name] = _load_data_tree(child)
        elif child.suffix in DATA_SUFFIXES:
            try:
                contents = load_data_file(child)
            except AssetLoadError as exc:
                logger.warning("Skipping locale file: %s", exc)
                continue
            tables[child.stem] = contents if isinstance(contents, dict) else {}
    return tuple(tables), tables


def load_collections(
    root: Path, definitions: cabc.Mapping[str, typ.Any]
) -> dict[str, CollectionDefinition]:
    """Pair each collection folder with its registered definition and template.

    Parameters
    ----------
    root : Path
        Folder whose subfolders are collections; each holds a ``template.*``
        document.
    definitions : Mapping[str, Any]
        Collection definitions contributed by plugins, keyed by folder name.
        Each is a mapping, or an object with attributes, declaring ``input``,
        ``output``, ``transform`` and optionally ``read``.

    Returns
    -------
    dict[str, CollectionDefinition]
        Loadable collections. Folders without a definition, a template, or a
        valid ``input``/``output``/``transform`` are skipped with a warning.
    """
    collections: dict[str, CollectionDefinition] = {}
    if not root.is_dir():
        return collections
    for folder in sorted(child for child in root.iterdir() if child.is_dir()):
        try:
            collections[folder.name] = _build_collection(folder, definitions)
        except AssetLoadError as exc:
            logger.warning("Skipping collection: %s", exc)
    return collections


def _definition_field(declared: object, key: str, default: object = None) -> typ.Any:
    if isinstance(declared, cabc.Mapping):
        return declared.get(key, default)
    return getattr(declared, key, default)


def _build_collection(
    folder: Path, definitions: cabc.Mapping[str, typ.Any]
) -> CollectionDefinition:
    name = folder.name
    declared = definitions.get(name)
    if declared is None:
        raise AssetLoadError(folder, "no collection definition is registered")
    templates = sorted(folder.glob("template.*"))
    if not templates:
        raise AssetLoadError(folder, "missing template document")
    if isinstance(declared, str | bytes):
        msg = (
            "definition must be a mapping or an object, "
            f"got {type(declared).__name__}"
        )
        raise AssetLoadError(folder, msg)
    input_glob = _definition_field(declared, "input")
    output_dir = _definition_field(declared, "output")
    transform = _definition_field(declared, "transform")
    if not isinstance(input_glob, str) or not input_glob:
        raise AssetLoadError(folder, "'input' must be a non-empty glob pattern")
    if not isinstance(output_dir, str):
        raise AssetLoadError(folder, "'output' must be a folder name")
    if not callable(transform):
        raise AssetLoadError(folder, "'transform' must be callable")
    return CollectionDefinition(
        name=name,
        input_glob=input_glob,
        output_dir=output_dir.strip("/"),
        transform=transform,
        template_body=_read_text(templates[0]),
        read_source_contents=bool(_definition_field(declared, "read", True)),
    )


__all__ = [
    "load_collections",
    "load_data",
    "load_data_file",
    "load_locales",
    "read_templates",
    "register_asset",
]
