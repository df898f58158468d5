"""Locating the program behind the external CSS command.

The configured ``css_command`` usually names an npm tool (postcss,
tailwindcss). A copy installed under ``node_modules/.bin`` wins over one on
``PATH``, so the version pinned in the site's ``package.json`` is the one
that runs. npm workspaces hoist tools into an ancestor's ``node_modules``,
so every directory from the project root upwards is searched.

Functions:
    node_bin_dirs: The ``node_modules/.bin`` candidates for a project.
    find_executable: Resolve a command name to the program to run.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

NODE_BIN_DIR = Path("node_modules") / ".bin"


def node_bin_dirs(project_root: Path) -> list[Path]:
    """Return the existing ``node_modules/.bin`` directories, nearest first."""
    root = Path(project_root).resolve()
    candidates = [folder / NODE_BIN_DIR for folder in (root, *root.parents)]
    return [folder for folder in candidates if folder.is_dir()]


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Resolve the program a CSS command starts with.

    A name with a directory part is resolved as given. A bare name is looked
    up in the nearest ``node_modules/.bin`` at or above ``project_root``,
    then on ``PATH``. Only files the current user may execute match; on
    Windows the ``PATHEXT`` suffixes (npm installs ``.cmd`` shims) are tried.

    Args:
        name: Program name or path, e.g. ``postcss`` or ``./bin/css``.
        project_root: Site root whose node_modules are searched first.

    Returns:
        Full path to the program, or None if it cannot be found.

    Examples:
        >>> find_executable('postcss', Path('/my/site'))
        '/my/site/node_modules/.bin/postcss'
    """
    if os.path.dirname(name):
        return shutil.which(name)

    if project_root is not None:
        bin_dirs = node_bin_dirs(project_root)
        if bin_dirs:
            found = shutil.which(name, path=os.pathsep.join(map(str, bin_dirs)))
            if found:
                return found

    return shutil.which(name)
