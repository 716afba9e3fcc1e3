"""Backend parameter validation."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from copy_kvs.domain.errors import ConfigurationError

ParamsT = TypeVar("ParamsT", bound=BaseModel)


def parse_params(model: type[ParamsT], connector_name: str, params: dict[str, Any]) -> ParamsT:
    """Validate backend parameters, reporting failures as configuration errors."""

    try:
        return model.model_validate(params)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid parameters for connector '{connector_name}': {exc}"
        ) from exc


__all__ = ["parse_params"]
