"""Protocol definitions for stw.

This module defines the capabilities the build pipeline and the development
server depend on, so that concrete implementations can be swapped without
touching the code that uses them.

These protocols enable:
- Building a site against an in-memory file system in tests
- Replacing the template engine behind the same compose-and-render contract
- Driving the development server with any object that can build a site
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .build import BuildResult


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for the file operations performed by a build.

    Paths are passed through unchanged, so implementations decide whether
    relative paths are resolved against the working directory.
    """

    @abstractmethod
    def walk(self, root: Path) -> Iterator[tuple[Path, bool]]:
        """Yield every entry below ``root`` as ``(path, is_dir)``.

        Directories are yielded before their contents. ``root`` itself is not
        yielded.

        Raises:
            FileNotFoundError: If ``root`` does not exist.
        """
        ...

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Return True if ``path`` names an existing file or directory."""
        ...

    @abstractmethod
    def read_bytes(self, path: Path) -> bytes:
        """Return the raw content of a file."""
        ...

    @abstractmethod
    def read_text(self, path: Path) -> str:
        """Return the UTF-8 decoded content of a file."""
        ...

    @abstractmethod
    def write_bytes(self, path: Path, data: bytes) -> None:
        """Create or truncate a file and write ``data`` to it."""
        ...

    @abstractmethod
    def create(self, path: Path) -> IO[str]:
        """Create or truncate a file and return a text stream for writing it."""
        ...

    @abstractmethod
    def makedirs(self, path: Path) -> None:
        """Create a directory and any missing parents."""
        ...

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        """Remove a directory and everything in it; a missing path is ignored."""
        ...


@runtime_checkable
class RenderedTemplateSet(Protocol):
    """Protocol for a composed set of templates that can be rendered by name."""

    @abstractmethod
    def render_into(
        self, writer: IO[str], name: str, context: Mapping[str, Any]
    ) -> None:
        """Render the named template with ``context`` into ``writer``."""
        ...

    @abstractmethod
    def render_string(self, source: str, context: Mapping[str, Any]) -> str:
        """Render an ad-hoc template source with the same environment."""
        ...


@runtime_checkable
class TemplateComposer(Protocol):
    """Protocol for composing the layout and partials into one template set."""

    @abstractmethod
    def compose(self, root: Path, names: Sequence[str]) -> RenderedTemplateSet:
        """Load ``names`` (relative to ``root``) into one template set.

        Raises:
            OSError: If a template cannot be read.
            jinja2.TemplateSyntaxError: If a template does not compile.
        """
        ...


@runtime_checkable
class Builder(Protocol):
    """Protocol for anything the development server can rebuild."""

    @abstractmethod
    def build(self, output_dir: Path | None = None) -> BuildResult:
        """Run a full build, optionally into ``output_dir``."""
        ...


@runtime_checkable
class ReloadClient(Protocol):
    """Protocol for a connected live-reload subscriber."""

    @abstractmethod
    def send(self, message: bytes) -> None:
        """Write ``message`` to the subscriber and flush it.

        Raises:
            OSError: If the subscriber can no longer be written to.
        """
        ...
