"""Asset processors for stw.

Each processor decides whether it handles a given asset and writes the
result to the output tree. The registry hands every asset to the
highest-priority processor that accepts it.

Key classes:
- StaticAssetProcessor: Copies any file byte for byte.
- ExternalCSSProcessor: Runs one stylesheet through a configured command.
- AssetProcessorRegistry: Registry for managing asset processors.
"""

from __future__ import annotations

import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from .executable_utils import find_executable
from .filesystem import OSFileSystem
from .protocols import FileSystem


class AssetProcessingError(RuntimeError):
    """Raised when an external asset command fails."""


class BaseAssetProcessor(ABC):
    """Base class for asset processors.

    Provides shared utilities:
        - ensure_dest_dir: Creates parent directories for output files.
    """

    def __init__(self, fs: FileSystem | None = None):
        self.fs = fs or OSFileSystem()

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset."""
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> None:
        """Write the processed asset to ``dest``.

        Raises:
            OSError: If the source cannot be read or the destination written.
        """
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        """Ensure the parent directory of the destination exists."""
        self.fs.makedirs(dest.parent)

    def copy(self, source: Path, dest: Path) -> None:
        self.fs.write_bytes(dest, self.fs.read_bytes(source))


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies assets without modification.

    This is the fallback processor for every asset no other processor claims.
    """

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        self.copy(source, dest)


class ExternalCSSProcessor(BaseAssetProcessor):
    """Runs a single stylesheet through an external command.

    The command line may contain ``{src}`` and ``{dest}`` placeholders; when
    it contains neither, the source and destination paths are appended. The
    tool's output is not inspected, only its exit status.
    """

    def __init__(
        self,
        command: str,
        assets_dir: Path,
        source_name: str,
        project_root: Path | None = None,
        fs: FileSystem | None = None,
    ):
        """Initialize the CSS processor.

        Args:
            command: Command line to run, e.g. ``postcss {src} -o {dest}``.
            assets_dir: Root of the asset tree.
            source_name: Stylesheet path relative to ``assets_dir``.
            project_root: Directory searched for ``node_modules/.bin``.
            fs: File system used for the fallback copy.
        """
        super().__init__(fs)
        self.command = command
        self.assets_dir = assets_dir
        self.source_name = source_name
        self.project_root = project_root

    @property
    def priority(self) -> int:
        return 95

    def can_process(self, path: Path) -> bool:
        try:
            rel = path.relative_to(self.assets_dir)
        except ValueError:
            return False
        return rel.as_posix() == self.source_name

    def build_command(self, source: Path, dest: Path) -> list[str]:
        args = shlex.split(self.command)
        if not any("{src}" in arg or "{dest}" in arg for arg in args):
            return [*args, str(source), str(dest)]
        return [
            arg.replace("{src}", str(source)).replace("{dest}", str(dest))
            for arg in args
        ]

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        cmd = self.build_command(source, dest)
        executable = find_executable(cmd[0], self.project_root)
        if not executable:
            print(f"CSS command '{cmd[0]}' not found; copying {self.source_name} unprocessed.")
            self.copy(source, dest)
            return

        result = subprocess.run(
            [executable, *cmd[1:]], capture_output=True, text=True
        )
        if result.returncode != 0:
            raise AssetProcessingError(
                f"{cmd[0]} exited with status {result.returncode}: {result.stderr.strip()}"
            )


class AssetProcessorRegistry:
    """Registry for managing asset processors.

    New processors can be added without modifying existing ones; the
    registry selects the appropriate processor for each file.
    """

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        """Register a new processor.

        Processors are stored sorted by priority (highest first).
        """
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset using the appropriate processor.

        Returns:
            True if a processor handled the asset, False if none accepted it.
        """
        processor = self.get_processor(source)
        if processor is None:
            return False
        processor.process(source, dest)
        return True


def create_default_registry(
    fs: FileSystem,
    assets_dir: Path,
    css_command: str | None = None,
    css_source: str = "css/styles.css",
    project_root: Path | None = None,
) -> AssetProcessorRegistry:
    """Create a registry with the default processors.

    The CSS processor is only registered when a command is configured, so
    without one every asset is a plain copy.
    """
    registry = AssetProcessorRegistry()
    registry.register(StaticAssetProcessor(fs))
    if css_command:
        registry.register(
            ExternalCSSProcessor(
                css_command, assets_dir, css_source, project_root=project_root, fs=fs
            )
        )
    return registry
