"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cliptrim.engine import TranscodeEngine
from cliptrim.models import SourceMedia, TrimmedArtifact

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeInstance:
    """In-memory transcoder: ``run`` writes ``output`` to the last argv entry.

    ``measure`` reports the length the trim command asked for unless a
    duration is pinned in ``durations``.
    """

    def __init__(self, output: bytes = b"trimmed", load_failures: int = 0):
        self.output = output
        self.load_failures = load_failures
        self.loaded = False
        self.files: dict[str, bytes] = {}
        self.commands: list[tuple[str, ...]] = []
        self.fail_run_on: set[int] = set()
        self.fail_unlink = False
        self.durations: dict[str, float | Exception] = {}
        self.load_calls = 0
        self.closed = 0

    def is_loaded(self) -> bool:
        return self.loaded

    def load(self) -> None:
        self.load_calls += 1
        if self.load_failures > 0:
            self.load_failures -= 1
            raise RuntimeError("core failed to load")
        self.loaded = True

    def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = data

    def read_file(self, name: str) -> bytes:
        return self.files[name]

    def unlink(self, name: str) -> None:
        if self.fail_unlink:
            raise OSError("busy")
        del self.files[name]

    def run(self, *argv: str) -> None:
        self.commands.append(argv)
        if len(self.commands) in self.fail_run_on:
            raise RuntimeError("ffmpeg exited with 1")
        self.files[argv[-1]] = self.output
        if "-t" in argv:
            length = float(argv[argv.index("-t") + 1])
        else:
            length = float(argv[argv.index("-to") + 1]) - float(argv[argv.index("-ss") + 1])
        self.durations.setdefault(argv[-1], length)

    def measure(self, name: str) -> float:
        duration = self.durations[name]
        if isinstance(duration, Exception):
            raise duration
        return duration

    def close(self) -> None:
        self.closed += 1
        self.loaded = False
        self.files.clear()


class FakeLoader:
    def __init__(self, instance: FakeInstance | None = None, script_failures: int = 0):
        self.instance = instance or FakeInstance()
        self.script_failures = script_failures
        self.script_calls = 0
        self.created = 0

    def load_script(self) -> None:
        self.script_calls += 1
        if self.script_failures > 0:
            self.script_failures -= 1
            raise RuntimeError("network down")

    def create_instance(self, config):
        self.created += 1
        return self.instance


def make_response(status: int = 200, body=None, reason: str = "OK"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = reason
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


def make_artifact(n: int = 1, duration: float = 90.0, prefix: str = "video") -> TrimmedArtifact:
    return TrimmedArtifact(
        name=f"{prefix}{n}",
        source_range_index=n - 1,
        duration_seconds=duration,
        mime_type="video/mp4",
        data=f"clip-{n}".encode(),
    )


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def engine(fake_loader) -> TranscodeEngine:
    return TranscodeEngine(loader=fake_loader, sleep=lambda s: None)


@pytest.fixture
def source(tmp_path) -> SourceMedia:
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"source video bytes")
    return SourceMedia(path=path, mime_type="video/mp4", size=18, duration=100.0)


@pytest.fixture
def webm_source(tmp_path) -> SourceMedia:
    path = tmp_path / "talk.webm"
    path.write_bytes(b"source video bytes")
    return SourceMedia(path=path, mime_type="video/webm", size=18, duration=100.0)
