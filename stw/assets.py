"""Asset pipeline for stw.

Mirrors the asset tree into ``<output>/assets``, handing each file to the
processor registry. Without a configured CSS command every file is copied
byte for byte.
"""

from __future__ import annotations

from pathlib import Path

from .asset_processors import AssetProcessorRegistry, create_default_registry
from .filesystem import OSFileSystem
from .protocols import FileSystem


class AssetPipeline:
    """Copies (and optionally processes) the asset tree.

    Attributes:
        assets_dir: Directory containing source assets.
        target_dir: Directory the tree is mirrored into.
        fs: File system the pipeline reads and writes through.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        assets_dir: Path,
        target_dir: Path,
        fs: FileSystem | None = None,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.assets_dir = assets_dir
        self.target_dir = target_dir
        self.fs = fs or OSFileSystem()
        self.processor_registry = processor_registry or create_default_registry(
            self.fs, assets_dir
        )

    def run(self) -> list[Path]:
        """Mirror every directory and process every file.

        Returns:
            Source paths of the processed files. Empty if there is no asset
            directory.

        Raises:
            OSError: If a file cannot be read or written.
            AssetProcessingError: If an external command fails.
        """
        if not self.fs.exists(self.assets_dir):
            return []

        self.fs.makedirs(self.target_dir)
        processed: list[Path] = []
        for item, is_dir in self.fs.walk(self.assets_dir):
            dest = self.target_dir / item.relative_to(self.assets_dir)
            if is_dir:
                self.fs.makedirs(dest)
                continue
            if self.processor_registry.process(item, dest):
                processed.append(item)
        return processed
