from __future__ import annotations

from copy_kvs.application.services import CopyJobHandler
from copy_kvs.config import CopySettings
from copy_kvs.domain.backend_kinds import BackendKind
from copy_kvs.domain.errors import NotFoundError
from copy_kvs.domain.jobs import CopyJob
from copy_kvs.infrastructure.registry import ConnectorRegistry


class FakeConnector:
    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects = dict(objects or {})
        self.put_calls: list[str] = []
        self.closed = False

    def head(self, key: str) -> bool:
        return key in self.objects

    def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise NotFoundError(f"Key '{key}' was not found.")
        return self.objects[key]

    def put(self, key: str, data: bytes) -> None:
        self.put_calls.append(key)
        self.objects[key] = data

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def list_iterator(self, after_key: str | None = None):
        return iter(sorted(self.objects))

    def close(self) -> None:
        self.closed = True


def _handler(
    source: FakeConnector,
    destination: FakeConnector,
    overwrite: bool = True,
) -> tuple[CopyJobHandler, ConnectorRegistry]:
    settings = CopySettings(
        lock_file="/tmp/unused.lock",
        overwrite=overwrite,
        connectors={
            "mongo": {"type": "GridFS", "database": "files"},
            "s3": {"type": "AmazonS3", "bucket_name": "bucket"},
        },
    )
    registry = ConnectorRegistry(
        settings,
        factories={
            BackendKind.GRIDFS: lambda _name, _settings: source,
            BackendKind.AMAZON_S3: lambda _name, _settings: destination,
        },
    )
    return CopyJobHandler(registry, overwrite=overwrite), registry


def test_handler_copies_object_bytes() -> None:
    source = FakeConnector({"report.pdf": b"%PDF"})
    destination = FakeConnector()
    handler, _ = _handler(source, destination)

    result = handler(CopyJob(key="report.pdf", from_connector="mongo", to_connector="s3"))

    assert result.succeeded is True
    assert result.skipped is False
    assert destination.objects == {"report.pdf": b"%PDF"}


def test_handler_overwrites_existing_object_by_default() -> None:
    source = FakeConnector({"a": b"new"})
    destination = FakeConnector({"a": b"old"})
    handler, _ = _handler(source, destination)

    result = handler(CopyJob(key="a", from_connector="mongo", to_connector="s3"))

    assert result.succeeded is True
    assert destination.objects["a"] == b"new"


def test_handler_skips_existing_object_without_overwrite() -> None:
    source = FakeConnector({"a": b"new"})
    destination = FakeConnector({"a": b"old"})
    handler, _ = _handler(source, destination, overwrite=False)

    result = handler(CopyJob(key="a", from_connector="mongo", to_connector="s3"))

    assert result.skipped is True
    assert result.succeeded is True
    assert destination.put_calls == []
    assert destination.objects["a"] == b"old"


def test_handler_reports_missing_source_key_as_error() -> None:
    handler, _ = _handler(FakeConnector(), FakeConnector())

    result = handler(CopyJob(key="missing", from_connector="mongo", to_connector="s3"))

    assert result.succeeded is False
    assert result.error is not None
    assert result.error.startswith("NotFoundError:")


def test_handler_reports_unknown_connector_as_error() -> None:
    handler, _ = _handler(FakeConnector({"a": b"1"}), FakeConnector())

    result = handler(CopyJob(key="a", from_connector="mongo", to_connector="nowhere"))

    assert result.succeeded is False
    assert "Connector 'nowhere' was not found." in (result.error or "")


def test_handler_close_closes_connectors_of_current_process() -> None:
    source = FakeConnector({"a": b"1"})
    destination = FakeConnector()
    handler, registry = _handler(source, destination)
    handler(CopyJob(key="a", from_connector="mongo", to_connector="s3"))

    handler.close()

    assert source.closed is True
    assert destination.closed is True
    assert registry.instance_count == 0
