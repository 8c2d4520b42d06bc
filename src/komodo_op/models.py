"""
Data models — what travels between 1Password, the synchronizer and Komodo.

Vault models decode 1Password Connect payloads. Komodo requests are
one model per operation so every envelope the client can send is
spelled out here, endpoint included.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


# ---------------------------------------------------------------------------
# 1Password Connect
# ---------------------------------------------------------------------------


class VaultItemSummary(BaseModel):
    """An entry from the vault item listing."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return _none_to_empty(v)


class VaultField(BaseModel):
    """A single field within a 1Password item.

    ``type`` and ``purpose`` are informational only (e.g. CONCEALED,
    PASSWORD); sync decisions look at label and value.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    label: str = ""
    value: str = ""
    type: str = ""
    purpose: str = ""

    @field_validator("id", "label", "value", "type", "purpose", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @property
    def syncable(self) -> bool:
        """Whether the field has both a label and a value."""
        return bool(self.label) and bool(self.value)


class VaultItem(BaseModel):
    """Full details of a 1Password item."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    fields: list[VaultField] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def title_not_null(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @field_validator("fields", mode="before")
    @classmethod
    def fields_not_null(cls, v: Any) -> Any:
        return [] if v is None else v


# ---------------------------------------------------------------------------
# Komodo
# ---------------------------------------------------------------------------


class KomodoVariable(BaseModel):
    """A variable record as returned by Komodo.

    ``value`` may come back masked for secret variables.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    value: str = ""
    description: str = ""
    is_secret: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("value", "description", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return _none_to_empty(v)


class KomodoErrorResponse(BaseModel):
    """Failure envelope: ``{"error": ..., "trace": [...]}``."""

    model_config = ConfigDict(extra="ignore")

    error: str = ""
    trace: list[str] = Field(default_factory=list)

    @field_validator("trace", mode="before")
    @classmethod
    def trace_as_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v]


class _KomodoRequest(BaseModel):
    """Base for Komodo operations.

    Subclass name is the operation ``type``; fields are its ``params``.
    """

    endpoint: ClassVar[str] = "/read"

    def envelope(self) -> dict[str, Any]:
        """Serialize to the ``{type, params}`` wire format."""
        return {"type": type(self).__name__, "params": self.model_dump()}


class GetVariable(_KomodoRequest):
    endpoint: ClassVar[str] = "/read"

    name: str


class ListVariables(_KomodoRequest):
    endpoint: ClassVar[str] = "/read"


class CreateVariable(_KomodoRequest):
    endpoint: ClassVar[str] = "/write"

    name: str
    value: str
    description: str
    is_secret: Literal[True] = True


class UpdateVariableValue(_KomodoRequest):
    endpoint: ClassVar[str] = "/write"

    name: str
    value: str


class DeleteVariable(_KomodoRequest):
    endpoint: ClassVar[str] = "/write"

    name: str


KomodoRequest = Union[
    GetVariable,
    ListVariables,
    CreateVariable,
    UpdateVariableValue,
    DeleteVariable,
]


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------


class SyncReport(BaseModel):
    """Counters for one synchronization run."""

    items_seen: int = 0
    secrets_found: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    item_errors: int = 0
    sync_errors: int = 0
    delete_errors: int = 0
    source_failed: bool = False
    listing_failed: bool = False

    @property
    def processed(self) -> int:
        """Secrets successfully created or updated."""
        return self.created + self.updated

    @property
    def total_errors(self) -> int:
        """Every failure in the run; zero means full success."""
        return (
            self.item_errors
            + self.sync_errors
            + self.delete_errors
            + int(self.listing_failed)
            + int(self.source_failed)
        )

    @property
    def ok(self) -> bool:
        return self.total_errors == 0
