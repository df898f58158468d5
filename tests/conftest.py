import errno
import io
from pathlib import Path

import pytest

BASE_TEMPLATES = {
    "templates/base.html": (
        "<html><head>{% include 'partials/head.html' %}</head>"
        "<body>{% include 'components/header.html' %}"
        "<main>{{ content }}</main>"
        "{% include 'components/footer.html' %}</body></html>\n"
    ),
    "templates/partials/head.html": (
        "<title>{{ meta.title or title }}</title>"
        '<meta name="description" content="{{ meta.description }}">'
        "{% if meta.jsonld %}"
        '<script type="application/ld+json">{{ meta.jsonld | toJson }}</script>'
        "{% endif %}"
    ),
    "templates/components/header.html": "<header>{{ title }}</header>",
    "templates/components/footer.html": "<footer>{{ path }}</footer>",
}


def _missing(path):
    return FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))


class _MemoryFile(io.StringIO):
    def __init__(self, fs, path):
        super().__init__()
        self._fs = fs
        self._path = path

    def close(self):
        if not self.closed:
            self._fs.files[self._path] = self.getvalue().encode("utf-8")
        super().close()


class MemoryFileSystem:
    """In-memory FileSystem keyed by Path."""

    def __init__(self, files=None):
        self.files = {}
        self.dirs = set()
        for path, content in (files or {}).items():
            self.add(path, content)

    def add(self, path, content=""):
        path = Path(path)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.makedirs(path.parent)
        self.files[path] = content

    def walk(self, root):
        root = Path(root)
        if root not in self.dirs:
            raise _missing(root)
        entries = [(d, True) for d in self.dirs if root in d.parents]
        entries += [(f, False) for f in self.files if root in f.parents]
        yield from sorted(entries)

    def exists(self, path):
        path = Path(path)
        return path in self.files or path in self.dirs

    def read_bytes(self, path):
        path = Path(path)
        if path not in self.files:
            raise _missing(path)
        return self.files[path]

    def read_text(self, path):
        return self.read_bytes(path).decode("utf-8")

    def write_bytes(self, path, data):
        path = Path(path)
        if path.parent not in self.dirs:
            raise _missing(path.parent)
        self.files[path] = bytes(data)

    def create(self, path):
        path = Path(path)
        if path.parent not in self.dirs:
            raise _missing(path.parent)
        return _MemoryFile(self, path)

    def makedirs(self, path):
        path = Path(path)
        self.dirs.add(path)
        self.dirs.update(path.parents)

    def remove_tree(self, path):
        path = Path(path)
        self.files = {
            p: data for p, data in self.files.items() if p != path and path not in p.parents
        }
        self.dirs = {d for d in self.dirs if d != path and path not in d.parents}


def write_files(root: Path, files: dict) -> Path:
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def memory_fs():
    return MemoryFileSystem(BASE_TEMPLATES)


@pytest.fixture
def project(tmp_path):
    """A project directory holding the base layout and its partials."""
    return write_files(tmp_path, BASE_TEMPLATES)
