"""Site building functionality for stw.

This module contains the full build: it resets the output directory, composes
the templates, renders every ``index.html`` of the page tree through the base
layout and copies the asset tree. Any failure aborts the whole build; pages
already written by the failed build are left in place.

Key classes:
- SiteBuilder: Runs a build for a Site.
- BuildError: Error during a build, with the file it concerns.
- BuildResult: What a successful build produced.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import TemplateSyntaxError
from markupsafe import Markup

from .asset_processors import create_default_registry
from .assets import AssetPipeline
from .filesystem import OSFileSystem
from .meta import Meta, MetaError, load_site_meta, merge, parse_front_matter
from .protocols import FileSystem, RenderedTemplateSet, TemplateComposer
from .site import BASE_TEMPLATE, INDEX_FILE, TEMPLATE_FILES, Page, Site
from .templates import JinjaTemplateComposer
from .utils import titleize

HOME_TITLE = "Home"


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        output_dir: Directory the site was built into.
        pages: Rendered page paths, relative to the page tree.
        assets: Source paths of the copied or processed assets.
    """

    output_dir: Path
    pages: list[str] = field(default_factory=list)
    assets: list[Path] = field(default_factory=list)


def page_title(rel: Path) -> str:
    """Derive a page title from its path relative to the page tree."""
    if rel.parent == Path("."):
        return HOME_TITLE
    return titleize(rel.parent.name)


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if isinstance(exc, MetaError):
        return f"Invalid metadata: {error_msg}"
    if isinstance(exc, UnicodeDecodeError):
        return f"File is not valid UTF-8: {error_msg}"

    return f"{error_type}: {error_msg}"


class SiteBuilder:
    """Builds a Site into its output directory.

    Attributes:
        site: Settings and configuration of the site.
        fs: File system the build reads and writes through.
        composer: Composer for the base layout and partials.
    """

    def __init__(
        self,
        site: Site,
        fs: FileSystem | None = None,
        composer: TemplateComposer | None = None,
    ):
        self.site = site
        self.fs = fs or OSFileSystem()
        self.composer = composer or JinjaTemplateComposer(self.fs)

    def build(self, output_dir: Path | None = None) -> BuildResult:
        """Run a full build.

        Args:
            output_dir: Optional directory to build into instead of
                ``site.dist_dir``.

        Returns:
            BuildResult listing the rendered pages and copied assets.

        Raises:
            BuildError: On the first failure of any step.
        """
        output_dir = output_dir or self.site.dist_dir
        self._reset_output(output_dir)

        try:
            site_meta = load_site_meta(self.site.config)
        except MetaError as exc:
            raise BuildError(self.site.config_path, _format_error_message(exc), exc) from exc

        templates = self._compose_templates()
        result = BuildResult(output_dir=output_dir)
        result.pages = self._build_pages(templates, site_meta, output_dir)
        result.assets = self._copy_assets(output_dir)
        return result

    def _reset_output(self, output_dir: Path) -> None:
        try:
            self.fs.remove_tree(output_dir)
            self.fs.makedirs(output_dir)
        except OSError as exc:
            raise BuildError(
                output_dir, f"Could not reset output directory: {exc}", exc
            ) from exc

    def _compose_templates(self) -> RenderedTemplateSet:
        try:
            return self.composer.compose(self.site.templates_dir, TEMPLATE_FILES)
        except TemplateSyntaxError as exc:
            source = self.site.templates_dir / (exc.name or BASE_TEMPLATE)
            raise BuildError(source, _format_error_message(exc), exc) from exc
        except OSError as exc:
            source = Path(exc.filename) if exc.filename else self.site.templates_dir
            raise BuildError(source, _format_error_message(exc), exc) from exc
        except UnicodeDecodeError as exc:
            source = self._undecodable_template()
            raise BuildError(source, _format_error_message(exc), exc) from exc

    def _undecodable_template(self) -> Path:
        for name in TEMPLATE_FILES:
            path = self.site.templates_dir / name
            try:
                self.fs.read_text(path)
            except UnicodeDecodeError:
                return path
            except OSError:
                break
        return self.site.templates_dir

    def _build_pages(
        self, templates: RenderedTemplateSet, site_meta: Meta, output_dir: Path
    ) -> list[str]:
        pages_dir = self.site.pages_dir
        try:
            entries = list(self.fs.walk(pages_dir))
        except OSError as exc:
            raise BuildError(pages_dir, _format_error_message(exc), exc) from exc

        built: list[str] = []
        for path, is_dir in entries:
            if is_dir or path.name != INDEX_FILE:
                continue
            rel = path.relative_to(pages_dir)
            try:
                self._build_page(templates, site_meta, path, output_dir / rel, rel)
            except BuildError:
                raise
            except Exception as exc:
                raise BuildError(path, _format_error_message(exc), exc) from exc
            built.append(rel.as_posix())
        return built

    def _build_page(
        self,
        templates: RenderedTemplateSet,
        site_meta: Meta,
        source: Path,
        dest: Path,
        rel: Path,
    ) -> None:
        raw = self.fs.read_text(source)
        page_meta, body = parse_front_matter(raw)
        merged = merge(site_meta, page_meta)
        merged.validate()

        page = Page(
            title=page_title(rel),
            path=rel.as_posix(),
            is_dev=self.site.enable_auto_reload,
            config=self.site.config,
            meta=merged,
        )
        content = templates.render_string(body, page.as_context())
        page = dataclasses.replace(page, content=Markup(content))

        self.fs.makedirs(dest.parent)
        with self.fs.create(dest) as f:
            templates.render_into(f, BASE_TEMPLATE, page.as_context())

    def _copy_assets(self, output_dir: Path) -> list[Path]:
        registry = create_default_registry(
            self.fs,
            self.site.assets_dir,
            css_command=self.site.css_command,
            css_source=self.site.css_source,
            project_root=self.site.project_root,
        )
        pipeline = AssetPipeline(
            self.site.assets_dir, output_dir / "assets", self.fs, registry
        )
        try:
            return pipeline.run()
        except Exception as exc:
            source = Path(getattr(exc, "filename", None) or self.site.assets_dir)
            raise BuildError(source, _format_error_message(exc), exc) from exc
