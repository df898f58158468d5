"""stw static web generator.

This package renders a tree of HTML pages with YAML or JSON front matter through
a Jinja2 base layout and partials, copies the asset tree next to them, and can
serve the result with live reload while the sources are edited.

The main entry point is the CLI module, which provides commands for scaffolding
new sites, building them, and running the development server.

Components:
- meta: front matter parsing, metadata merge and validation.
- templates: composition of the base layout and its partials.
- build: the full build of pages and assets.
- server / watcher / reload: development server with rebuild on change.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
