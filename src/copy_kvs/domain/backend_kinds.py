"""Backend kind helpers."""

from enum import StrEnum

from copy_kvs.domain.errors import ConfigurationError


class BackendKind(StrEnum):
    """Supported storage backend kinds."""

    AMAZON_S3 = "AmazonS3"
    GRIDFS = "GridFS"
    POSTGRES_BLOB = "PostgresBLOB"
    LOCAL_DIRECTORY = "LocalDirectory"


def parse_backend_kind(value: str, connector_name: str) -> BackendKind:
    """Resolve a configured connector type, ignoring case."""

    normalized = value.strip().lower()
    for kind in BackendKind:
        if kind.value.lower() == normalized:
            return kind
    raise ConfigurationError(
        f"Unconfigured connector type '{value}' for connector '{connector_name}'."
    )


__all__ = ["BackendKind", "parse_backend_kind"]
