import sys
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def m():
    """The CLI module, imported once the project root is importable."""
    return importlib.import_module("main")


@pytest.fixture()
def no_progress(monkeypatch, m):
    """Capture progress lines from the CLI instead of writing them."""
    lines = []
    monkeypatch.setattr(m, "_print_progress", lines.append)
    return lines


@pytest.fixture()
def progress_recorder():
    """A progress callback recording each ``(done, total)`` pair."""
    calls = []
    return (lambda done, total: calls.append((done, total))), calls


@pytest.fixture()
def sample_files(tmp_path: Path):
    """Create a few input files covering the interesting shapes.

    Files:
        empty.bin   zero bytes
        single.bin  one byte value repeated
        text.txt    short English text
        random.bin  every byte value, shuffled and repeated
    """
    files = {
        "empty.bin": b"",
        "single.bin": b"z" * 1000,
        "text.txt": b"The quick brown fox jumps over the lazy dog.\n" * 20,
        "random.bin": bytes((i * 97 + 13) % 256 for i in range(10000)),
    }
    for name, data in files.items():
        (tmp_path / name).write_bytes(data)
    return {name: tmp_path / name for name in files}
