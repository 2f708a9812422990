import struct
import zipfile
from contextlib import contextmanager
from pathlib import Path

import pytest
from loguru import logger

from domains.file_ingest.errors import StoreError
from domains.file_ingest.staging import ensure_layout

TARGET = "books"


class FakeTransaction:
    """In-memory transaction: statements become visible on commit only."""

    def __init__(self, sink: "FakeSink"):
        self.sink = sink
        self.pending = set(sink.statements)

    def add_statements(self, triples) -> int:
        triples = [(str(s), str(p), str(o)) for s, p, o in triples]
        self.pending.update(triples)
        return len(triples)

    def execute(self, query, parameters):
        # Templates understood here: "DELETE $id" drops statements about $id
        self.sink.executions.append((query, dict(parameters)))
        if query.startswith("DELETE"):
            subject = str(parameters["id"])
            self.pending = {t for t in self.pending if t[0] != subject}

    def commit(self):
        self.sink.statements = self.pending
        self.sink.commits += 1


class FakeSink:
    """Stands in for the Neo4j graph sink."""

    def __init__(self, fail_open: bool = False):
        self.fail_open = fail_open
        self.statements = set()
        self.executions = []
        self.commits = 0
        self.targets = []

    @contextmanager
    def transaction(self, target):
        if self.fail_open:
            raise StoreError("store unavailable")
        self.targets.append(target)
        yield FakeTransaction(self)


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def unavailable_sink():
    return FakeSink(fail_open=True)


@pytest.fixture
def ingest_root(tmp_path):
    """Ingestion tree with the full layout for one target."""
    root = tmp_path / "ingest"
    ensure_layout(root, TARGET)
    return root


@pytest.fixture
def make_archive():
    """Factory writing a zip file from a {name: text} mapping."""

    def _make(path: Path, entries: dict) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for name, text in entries.items():
                zf.writestr(name, text)
        return path

    return _make


@pytest.fixture
def corrupt_entry():
    """Damage the compressed bytes of one archive entry in place.

    By default every byte is inverted; pass ``fill`` to overwrite them instead.
    """

    def _corrupt(archive: Path, index: int, fill: int = None) -> None:
        with zipfile.ZipFile(archive) as zf:
            info = zf.infolist()[index]

        data = bytearray(archive.read_bytes())
        offset = info.header_offset
        name_len, extra_len = struct.unpack("<HH", data[offset + 26:offset + 30])
        start = offset + 30 + name_len + extra_len
        for i in range(start, start + info.compress_size):
            data[i] = fill if fill is not None else data[i] ^ 0xFF
        archive.write_bytes(bytes(data))

    return _corrupt


@pytest.fixture
def log_messages():
    """Messages emitted through loguru while the test runs."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
