"""Ordered content transforms applied before and after rendering.

Steps are configured per file extension in ``sitepress.yaml``::

    transforms:
      .md:
        before: [markdown]
        after:
          - [mysite.filters:minify, 2]

A step name resolves to a built-in (``markdown``, ``strip``) or to any
importable callable via :func:`pkgutil.resolve_name`. The callable receives
the content followed by the configured arguments and returns new content; it
may be a coroutine function.
"""

from __future__ import annotations

import inspect
import logging
import pkgutil
import typing as typ

from .engines.helpers import HtmlContentRenderer
from .errors import TransformError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import TransformStep

logger = logging.getLogger(__name__)

StepFunction = typ.Callable[..., typ.Any]


def _builtin_steps() -> dict[str, StepFunction]:
    content = HtmlContentRenderer()

    def strip(text: str) -> str:
        return text.strip()

    return {"markdown": content.markdown, "strip": strip}


class TransformPipeline:
    """Resolve step names and apply steps in order."""

    def __init__(self, steps: cabc.Mapping[str, StepFunction] | None = None) -> None:
        self._steps = _builtin_steps()
        if steps:
            self._steps.update(steps)
        self._warned: set[str] = set()

    def resolve(self, name: str) -> StepFunction | None:
        """Return the callable for ``name``, or ``None`` when it cannot be found."""
        if name in self._steps:
            return self._steps[name]
        try:
            func = pkgutil.resolve_name(name)
        except (ImportError, AttributeError, ValueError):
            return None
        return func if callable(func) else None

    async def apply(self, content: str, steps: cabc.Sequence[TransformStep]) -> str:
        """Run ``content`` through ``steps``, each consuming the previous output.

        Unresolvable steps are skipped with a warning.

        Raises
        ------
        TransformError
            If a step raises or returns something other than text.
        """
        for step in steps:
            func = self.resolve(step.name)
            if func is None:
                if step.name not in self._warned:
                    self._warned.add(step.name)
                    logger.warning("Unknown transform '%s'; skipping it", step.name)
                continue
            try:
                result = func(content, *step.args)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:  # noqa: BLE001 - surfaced as TransformError
                raise TransformError(step.name, exc) from exc
            if isinstance(result, bytes):
                result = result.decode("utf-8")
            if not isinstance(result, str):
                msg = f"returned {type(result).__name__}, expected str"
                raise TransformError(step.name, TypeError(msg))
            content = result
        return content


async def apply_transforms(
    content: str,
    steps: cabc.Sequence[TransformStep],
    pipeline: TransformPipeline | None = None,
) -> str:
    """Apply ``steps`` to ``content`` with a default pipeline when none is given."""
    return await (pipeline or TransformPipeline()).apply(content, steps)


__all__ = ["StepFunction", "TransformPipeline", "apply_transforms"]
