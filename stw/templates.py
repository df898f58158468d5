"""Template composition for stw.

This module uses Jinja2 to load the base layout and its partials into one
environment, so the layout can include partials by their relative path and
page bodies can use the same syntax.

Key classes:
- JinjaTemplateComposer: Reads the fixed template files and compiles them.
- TemplateSet: The composed templates, rendered by name.

Templates render with ``StrictUndefined``: dereferencing a field the context
does not have is an error rather than an empty string.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO, Any

from jinja2 import DictLoader, Environment, StrictUndefined
from jinja2.utils import htmlsafe_json_dumps
from markupsafe import Markup

from .filesystem import OSFileSystem
from .protocols import FileSystem

__all__ = ["JinjaTemplateComposer", "TemplateSet", "create_environment", "to_json"]


def to_json(value: Any) -> Markup:
    """Serialize ``value`` to JSON that is safe inside a ``<script>`` element.

    Args:
        value: Any JSON-serializable value.

    Returns:
        Markup-safe JSON string with ``<``, ``>``, ``&`` and ``'`` escaped.
    """
    return htmlsafe_json_dumps(value)


def create_environment(sources: Mapping[str, str]) -> Environment:
    """Create the Jinja2 environment templates are rendered with.

    Args:
        sources: Template sources keyed by the name they are included by.

    Returns:
        Configured Jinja2 environment with the ``toJson`` helper installed.
    """
    env = Environment(
        loader=DictLoader(dict(sources)),
        autoescape=True,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.globals["toJson"] = to_json
    env.filters["toJson"] = to_json
    return env


class TemplateSet:
    """A compiled base layout plus partials.

    Attributes:
        env: Jinja2 environment holding every composed template.
        names: Names of the composed templates, in load order.
    """

    def __init__(self, env: Environment, names: Sequence[str]):
        self.env = env
        self.names = tuple(names)

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        """Render the named template to a string."""
        return self.env.get_template(name).render(context)

    def render_into(
        self, writer: IO[str], name: str, context: Mapping[str, Any]
    ) -> None:
        """Render the named template into ``writer``.

        Raises:
            jinja2.TemplateNotFound: If ``name`` was not composed.
            jinja2.UndefinedError: If the template dereferences a field
                missing from ``context``.
        """
        self.env.get_template(name).stream(context).dump(writer)

    def render_string(self, source: str, context: Mapping[str, Any]) -> str:
        """Render a template source, such as a page body, in this environment.

        The source may include any composed template by name.
        """
        return self.env.from_string(source).render(context)


class JinjaTemplateComposer:
    """Loads the layout and partials from disk (or any FileSystem) with Jinja2."""

    def __init__(self, fs: FileSystem | None = None):
        self.fs = fs or OSFileSystem()

    def compose(self, root: Path, names: Sequence[str]) -> TemplateSet:
        """Read and compile ``names`` relative to ``root``.

        Every template is compiled up front so that a syntax error in any of
        them surfaces here, unmodified.

        Args:
            root: Templates directory.
            names: Template paths relative to ``root``; the first is the base.

        Returns:
            TemplateSet ready to render.

        Raises:
            OSError: If a template cannot be read.
            UnicodeDecodeError: If a template is not valid UTF-8.
            jinja2.TemplateSyntaxError: If a template does not compile.
        """
        sources = {name: self.fs.read_text(root / name) for name in names}
        env = create_environment(sources)
        for name in names:
            env.get_template(name)
        return TemplateSet(env, names)
