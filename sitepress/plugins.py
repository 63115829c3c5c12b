"""Registry of user plugin modules declared in the site configuration.

A plugin is a Python module named in ``plugins:`` either by dotted import
path (``mysite.helpers``) or by a ``.py`` path relative to the input root
(``tools/format.py``). Every ``.py`` file in the helpers folder is also a
plugin without being listed. A module contributes through three optional
module-level mappings:

``HELPERS``
    Template globals, keyed by name.
``FILTERS``
    Template filters, keyed by name.
``COLLECTIONS``
    Collection definitions keyed by collection folder name, each a mapping
    with ``input``, ``output``, ``transform`` and optional ``read``.

Every :meth:`PluginRegistry.load` re-executes the modules, so edits made
while watching take effect on the next refresh. Plugins run with the full
privileges of the build process.
"""

from __future__ import annotations

import dataclasses as dc
import importlib
import importlib.util
import logging
import typing as typ
from pathlib import Path

from .errors import AssetLoadError
from .loaders import register_asset

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from types import ModuleType

logger = logging.getLogger(__name__)


@dc.dataclass(slots=True)
class PluginContributions:
    """Helpers, filters, and collection definitions gathered from plugins."""

    helpers: dict[str, cabc.Callable[..., typ.Any]] = dc.field(default_factory=dict)
    filters: dict[str, cabc.Callable[..., typ.Any]] = dc.field(default_factory=dict)
    collections: dict[str, cabc.Mapping[str, typ.Any]] = dc.field(
        default_factory=dict
    )


class PluginRegistry:
    """Import configured plugin modules and collect what they contribute."""

    def __init__(
        self,
        entries: cabc.Sequence[str],
        *,
        base_dir: Path,
        helpers_root: Path | None = None,
    ) -> None:
        self.entries = list(entries)
        self.base_dir = base_dir
        self.helpers_root = helpers_root
        self._modules: dict[str, ModuleType] = {}

    def discover(self) -> list[str]:
        """Return configured entries followed by helper files found on disk."""
        entries = list(self.entries)
        if self.helpers_root is not None and self.helpers_root.is_dir():
            entries.extend(
                str(path.resolve())
                for path in sorted(self.helpers_root.glob("*.py"))
                if not path.name.startswith("_")
            )
        return list(dict.fromkeys(entries))

    def load(self) -> PluginContributions:
        """Import or reload every plugin; broken plugins are logged and skipped."""
        contributions = PluginContributions()
        for entry in self.discover():
            try:
                module = self._import(entry)
                self._collect(module, contributions)
            except AssetLoadError as exc:
                logger.warning("Skipping plugin: %s", exc)
        return contributions

    def _import(self, entry: str) -> ModuleType:
        try:
            if entry.endswith(".py"):
                module = self._exec_file(self.base_dir / entry)
            elif entry in self._modules:
                module = importlib.reload(self._modules[entry])
            else:
                module = importlib.import_module(entry)
        except AssetLoadError:
            raise
        except Exception as exc:  # noqa: BLE001 - plugin code may raise anything
            raise AssetLoadError(entry, f"{type(exc).__name__}: {exc}") from exc
        self._modules[entry] = module
        return module

    @staticmethod
    def _exec_file(path: Path) -> ModuleType:
        """Execute a plugin file as a fresh module object."""
        if not path.is_file():
            raise AssetLoadError(path, "plugin file not found")
        module_name = f"sitepress_plugin_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise AssetLoadError(path, "not an importable Python file")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    @staticmethod
    def _collect(module: ModuleType, contributions: PluginContributions) -> None:
        tables = (
            ("HELPERS", contributions.helpers, "helper"),
            ("FILTERS", contributions.filters, "filter"),
            ("COLLECTIONS", contributions.collections, "collection"),
        )
        for attribute, table, kind in tables:
            declared = getattr(module, attribute, None)
            if declared is None:
                continue
            if not isinstance(declared, dict):
                msg = f"{attribute} must be a dict, got {type(declared).__name__}"
                raise AssetLoadError(module.__name__, msg)
            for name, value in declared.items():
                register_asset(table, str(name), value, kind=kind)


__all__ = ["PluginContributions", "PluginRegistry"]
