"""Utility functions for stw.

Key functions:
    titleize: Title-case a directory name for a page title.
    replace_directory: Swap a freshly built directory into place.
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path

WORD_RE = re.compile(r"\w+")


def titleize(name: str) -> str:
    """Upper-case the first letter of every word, leaving the rest as is.

    Words are runs of letters, digits and underscores; separators are kept.

    Examples:
        >>> titleize("about")
        'About'

        >>> titleize("getting-started")
        'Getting-Started'

        >>> titleize("myPage")
        'MyPage'
    """
    return WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:], name)


def replace_directory(source: Path, target: Path) -> None:
    """Move ``source`` to ``target``, discarding what ``target`` held.

    The old tree is renamed aside before the new one moves in, so ``target``
    is only missing for the instant between the two renames.

    Args:
        source: Directory holding the new content.
        target: Directory to replace.
    """
    previous = target.with_name(target.name + ".old")
    if previous.exists():
        shutil.rmtree(previous)
    if target.exists():
        os.replace(target, previous)
    os.replace(source, target)
    if previous.exists():
        shutil.rmtree(previous, ignore_errors=True)
