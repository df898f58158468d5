"""Command-line interface for stw.

This module defines the CLI commands using Click framework.
It provides commands for creating new sites, building them, and running the development server.

Commands:
- new: Scaffold a new stw site (also available as `init`).
- build: Build the site into dist/.
- serve: Run development server with live reload.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from pathlib import Path

import click
import questionary
from jinja2 import Template

from . import __version__
from .config import ConfigError

# Files copied by `stw new`
_SKELETON_DIR = Path(__file__).parent / "skeleton"
_WRANGLER_TEMPLATE = "wrangler.json.jinja"

_TAILWIND_DIRECTIVES = """@tailwind base;
@tailwind components;
@tailwind utilities;
"""

_TAILWIND_CSS_COMMAND = "postcss {src} -o {dest}"


@click.group()
@click.version_option(version=__version__, prog_name="stw")
def cli():
    """stw static site generator."""


@cli.command()
@click.argument("name")
@click.option("--tailwind", is_flag=True, help="Set up Tailwind CSS through PostCSS")
@click.option(
    "--wrangler",
    is_flag=True,
    help="Add a Wrangler configuration for Cloudflare Pages deployment",
)
def new(name: str, tailwind: bool, wrangler: bool):
    """Scaffold a new stw site."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    if tailwind:
        _setup_tailwind(target)
    if wrangler:
        _setup_wrangler(target)
    _try_git_init(target)
    click.echo(f"New stw site created at {target}")
    click.echo(f"To get started:\n  cd {name}\n  stw serve")


cli.add_command(new, name="init")


@cli.command()
def build():
    """Build the site into dist/."""
    project_root = Path.cwd()
    from .build import BuildError, SiteBuilder
    from .site import Site

    try:
        site = Site.from_root(project_root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        result = SiteBuilder(site).build()
    except BuildError as exc:
        _echo_build_error(exc, project_root)
        raise SystemExit(1) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option("--port", "-p", type=int, default=8080, show_default=True, help="Port to serve on")
@click.option(
    "--watch/--no-watch",
    "-w",
    default=True,
    show_default=True,
    help="Rebuild on source changes and reload connected browsers",
)
def serve(port: int, watch: bool):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .build import BuildError
    from .server import DevServer
    from .site import Site

    try:
        site = Site.from_root(project_root, enable_auto_reload=watch)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    server = DevServer(site, port=port)
    try:
        server.serve()
    except BuildError as exc:
        _echo_build_error(exc, project_root)
        raise SystemExit(1) from None


def _echo_build_error(exc, project_root: Path) -> None:
    """Display a user-friendly build failure."""
    try:
        rel_path = exc.source_path.resolve().relative_to(project_root.resolve())
    except ValueError:
        rel_path = exc.source_path
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the skeleton site into ``root``.

    Args:
        root: Root directory for the new site.
    """
    for src_path in sorted(_SKELETON_DIR.rglob("*")):
        if src_path.is_dir() or src_path.name == _WRANGLER_TEMPLATE:
            continue
        if "__pycache__" in src_path.parts:
            continue
        rel_path = src_path.relative_to(_SKELETON_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)


def _setup_tailwind(root: Path) -> None:
    """Add the Tailwind toolchain and point ``css_command`` at PostCSS."""
    package_json = {
        "name": root.name,
        "private": True,
        "devDependencies": {
            "autoprefixer": "^10.4.20",
            "postcss": "^8.4.47",
            "postcss-cli": "^11.0.0",
            "tailwindcss": "^3.4.13",
        },
    }
    (root / "package.json").write_text(
        json.dumps(package_json, indent=2) + "\n", encoding="utf-8"
    )
    (root / "postcss.config.js").write_text(
        "module.exports = {\n"
        "  plugins: {\n"
        "    tailwindcss: {},\n"
        "    autoprefixer: {},\n"
        "  },\n"
        "};\n",
        encoding="utf-8",
    )
    (root / "tailwind.config.js").write_text(
        "/** @type {import('tailwindcss').Config} */\n"
        "module.exports = {\n"
        '  content: ["./pages/**/*.html", "./templates/**/*.html"],\n'
        "  theme: {\n"
        "    extend: {},\n"
        "  },\n"
        "  plugins: [],\n"
        "};\n",
        encoding="utf-8",
    )
    styles = root / "assets" / "css" / "styles.css"
    styles.parent.mkdir(parents=True, exist_ok=True)
    styles.write_text(_TAILWIND_DIRECTIVES, encoding="utf-8")

    config_path = root / "config.yaml"
    config = config_path.read_text(encoding="utf-8") if config_path.exists() else ""
    if config and not config.endswith("\n"):
        config += "\n"
    config += f'css_command: "{_TAILWIND_CSS_COMMAND}"\n'
    config_path.write_text(config, encoding="utf-8")

    _try_npm_install(root)


def _setup_wrangler(root: Path) -> None:
    """Render wrangler.json for a Cloudflare Pages deployment."""
    domain = questionary.text(
        "Custom domain (e.g. yoursite.com):",
        validate=lambda x: len(x.strip()) > 0 or "Domain cannot be empty",
        style=_questionary_style(),
    ).ask()
    if domain is None:
        raise click.Abort()
    domain = domain.strip()
    if not domain:
        raise click.ClickException("A custom domain is required for --wrangler")

    source = (_SKELETON_DIR / _WRANGLER_TEMPLATE).read_text(encoding="utf-8")
    rendered = Template(source, keep_trailing_newline=True).render(
        project_name=root.name, domain=domain
    )
    (root / "wrangler.json").write_text(rendered, encoding="utf-8")

    click.echo("wrangler.json created.")
    click.echo("")
    click.echo("Next steps for deployment:")
    click.echo("  1. Push the site to a GitHub repository.")
    click.echo("  2. In the Cloudflare dashboard, create a Pages application")
    click.echo("     connected to that repository.")
    click.echo("  3. Use build command 'stw build' and output directory 'dist'.")
    click.echo("  4. Every push to the main branch deploys the site.")


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("STW_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        click.echo("git init failed; run it manually", err=True)


def _try_npm_install(root: Path) -> None:
    """Attempt to install Node dependencies if npm is available."""
    if os.environ.get("STW_SKIP_NPM_INSTALL") == "1":
        return
    npm_bin = shutil.which("npm")
    if not npm_bin:
        return
    try:
        subprocess.run(
            [npm_bin, "install"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        click.echo("npm install failed; run it manually", err=True)
