"""Compose file loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiofiles
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..errors import ErrorKind, TriageError

MAX_COMPOSE_FILE_SIZE_BYTES = 5 * 1024 * 1024


class DeployConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    replicas: int | None = None


class ComposeService(BaseModel):
    """Desired state for one service. Unknown compose keys are kept but unused."""

    model_config = ConfigDict(extra="allow")

    image: str | None = None
    container_name: str | None = None
    deploy: DeployConfig | None = None
    environment: list[str] | dict[str, Any] | None = None
    ports: list[str | int | dict[str, Any]] | None = None
    # Label values may be YAML scalars (true, 1); they are never compared.
    labels: list[str] | dict[str, Any] | None = None

    @property
    def replicas(self) -> int:
        # An unset or zero replica count means one replica.
        if self.deploy is None or not self.deploy.replicas:
            return 1
        return self.deploy.replicas


class ComposeFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    services: dict[str, ComposeService]
    name: str | None = None

    @field_validator("services", mode="before")
    @classmethod
    def _empty_service_bodies(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: ({} if body is None else body) for k, body in v.items()}
        return v


def parse_compose(text: str, *, source: str = "<string>") -> ComposeFile:
    """Parse compose YAML text into a ComposeFile."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise TriageError(
            ErrorKind.PARSE_ERROR,
            f"Failed to parse compose file {source}: {exc}",
            {"source": source},
        ) from exc

    if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
        raise TriageError(
            ErrorKind.PARSE_ERROR,
            f"Compose file {source} has no 'services' mapping",
            {"source": source},
        )

    try:
        return ComposeFile.model_validate(data)
    except ValidationError as exc:
        raise TriageError(
            ErrorKind.PARSE_ERROR,
            f"Compose file {source} is invalid: {exc.error_count()} error(s)",
            {"source": source, "errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


async def load_compose_file(path: str | Path, *, encoding: str = "utf-8") -> ComposeFile:
    """Read and parse a compose file from disk."""
    p = Path(path)
    if not p.is_file():
        raise TriageError(
            ErrorKind.NOT_FOUND,
            f"Compose file not found: {p}",
            {"source": str(p)},
        )

    size = p.stat().st_size
    if size > MAX_COMPOSE_FILE_SIZE_BYTES:
        raise TriageError(
            ErrorKind.PARSE_ERROR,
            f"Compose file {p} is too large ({size} bytes, max {MAX_COMPOSE_FILE_SIZE_BYTES})",
            {"source": str(p)},
        )

    try:
        async with aiofiles.open(p, encoding=encoding, errors="replace") as f:
            text = await f.read()
    except PermissionError as exc:
        raise TriageError(
            ErrorKind.PERMISSION_DENIED,
            f"Permission denied reading compose file {p}",
            {"source": str(p)},
        ) from exc
    except OSError as exc:
        raise TriageError(
            ErrorKind.INTERNAL_ERROR,
            f"Failed to read compose file {p}: {exc}",
            {"source": str(p)},
        ) from exc
    return parse_compose(text, source=str(p))
