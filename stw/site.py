"""Site settings and page render context for stw.

Key classes:
- Site: Source and output locations plus the loaded configuration.
- Page: The context a page is rendered with.

Reserved names:
- INDEX_FILE marks a directory of the page tree as a page.
- BASE_TEMPLATE and the partial paths make up the fixed template set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from markupsafe import Markup

from .config import DEFAULT_CONFIG_FILE, ConfigValue, load_config
from .meta import Meta

INDEX_FILE = "index.html"
BASE_TEMPLATE = "base.html"
HEADER_TEMPLATE_FILE = "components/header.html"
FOOTER_TEMPLATE_FILE = "components/footer.html"
HEAD_TEMPLATE_FILE = "partials/head.html"

TEMPLATE_FILES = (
    BASE_TEMPLATE,
    HEADER_TEMPLATE_FILE,
    FOOTER_TEMPLATE_FILE,
    HEAD_TEMPLATE_FILE,
)

DEFAULT_CSS_SOURCE = "css/styles.css"


@dataclass
class Site:
    """Static site settings.

    Attributes:
        pages_dir: Directory holding the page tree.
        templates_dir: Directory holding the base layout and partials.
        assets_dir: Directory copied to ``<dist_dir>/assets``.
        dist_dir: Output directory.
        enable_auto_reload: Whether pages are rendered for the dev server.
        config: Configuration document, strings already marked safe.
        config_path: Location of the configuration document.
        project_root: Directory searched for ``node_modules/.bin`` tools.
        css_source: Asset path handed to the external CSS command.
    """

    pages_dir: Path = Path("pages")
    templates_dir: Path = Path("templates")
    assets_dir: Path = Path("assets")
    dist_dir: Path = Path("dist")
    enable_auto_reload: bool = False
    config: dict[str, ConfigValue] = field(default_factory=dict)
    config_path: Path = Path(DEFAULT_CONFIG_FILE)
    project_root: Path = Path(".")
    css_source: str = DEFAULT_CSS_SOURCE

    @classmethod
    def from_root(cls, root: Path, enable_auto_reload: bool = False) -> Site:
        """Create a Site with the default layout under ``root`` and load its config.

        Raises:
            ConfigError: If the configuration document is invalid.
        """
        config_path = root / DEFAULT_CONFIG_FILE
        return cls(
            pages_dir=root / "pages",
            templates_dir=root / "templates",
            assets_dir=root / "assets",
            dist_dir=root / "dist",
            enable_auto_reload=enable_auto_reload,
            config=load_config(config_path),
            config_path=config_path,
            project_root=root,
        )

    @property
    def css_command(self) -> str | None:
        """The configured external CSS command, if any."""
        value = self.config.get("css_command")
        if value is None:
            return None
        return str(value).strip() or None

    def reload_config(self) -> None:
        """Replace the configuration document with a fresh read of ``config_path``."""
        self.config = load_config(self.config_path)


@dataclass
class Page:
    """Context a page is rendered with.

    Attributes:
        title: "Home" for the root page, else the titleized directory name.
        content: Rendered page body; empty while the body itself renders.
        path: Page path relative to the page tree, in POSIX form.
        is_dev: True when built for the development server.
        config: Site configuration document.
        meta: Site metadata merged with the page's front matter.
    """

    title: str
    path: str
    is_dev: bool
    config: dict[str, ConfigValue]
    meta: Meta
    content: Markup = field(default_factory=Markup)

    def as_context(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "path": self.path,
            "is_dev": self.is_dev,
            "config": self.config,
            "meta": self.meta,
        }
