"""Strict grammar of the memconfig.json driver schema.

A memconfig looks like::

    {
      "schema": {
        "types": [
          {"name": "Root", "fields": [...], "actions": [...], "events": [...]},
          ...
        ]
      },
      "dependencies": {"http": "http:"}
    }

Unknown keys are rejected at every level, the schema must declare a type
named ``Root`` and every type must declare at least one of ``fields``,
``actions`` or ``events``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ROOT_TYPE = "Root"
COLLECTION_SUFFIX = "Collection"
PAGE_SUFFIX = "Page"

_STRICT = ConfigDict(extra="forbid", populate_by_name=True)


def _not_null(value: Any) -> Any:
    # Optional keys may be left out, but an explicit null is a malformed document.
    if value is None:
        raise ValueError("may be omitted but must not be null")
    return value


class MemconfigParam(BaseModel):
    """A parameter of a field, action or event."""

    model_config = _STRICT

    name: str
    type: str
    description: str | None = None
    optional: bool | None = None
    of_type: str | None = Field(default=None, alias="ofType")

    @field_validator("description", "optional", "of_type", mode="before")
    @classmethod
    def _no_nulls(cls, value: Any) -> Any:
        return _not_null(value)

    @property
    def is_required(self) -> bool:
        return not self.optional


class MemconfigMember(BaseModel):
    """A field, action or event declared on a type."""

    model_config = _STRICT

    name: str
    type: str
    description: str | None = None
    params: list[MemconfigParam] | None = None
    of_type: str | None = Field(default=None, alias="ofType")

    @field_validator("description", "params", "of_type", mode="before")
    @classmethod
    def _no_nulls(cls, value: Any) -> Any:
        return _not_null(value)

    @property
    def required_params(self) -> list[MemconfigParam]:
        return [p for p in self.params or [] if p.is_required]


class MemconfigType(BaseModel):
    """A named type of the driver graph."""

    model_config = _STRICT

    name: str
    description: str | None = None
    fields: list[MemconfigMember] | None = None
    actions: list[MemconfigMember] | None = None
    events: list[MemconfigMember] | None = None

    @field_validator("description", "fields", "actions", "events", mode="before")
    @classmethod
    def _no_nulls(cls, value: Any) -> Any:
        return _not_null(value)

    @model_validator(mode="after")
    def _require_members(self) -> MemconfigType:
        if self.fields is None and self.actions is None and self.events is None:
            raise ValueError("Type must have at least one of: fields, actions, or events")
        return self

    @property
    def is_collection(self) -> bool:
        """``Root`` and ``*Collection`` types are navigated, not materialised."""
        return self.name == ROOT_TYPE or self.name.endswith(COLLECTION_SUFFIX)

    def field_names(self) -> set[str]:
        return {f.name for f in self.fields or []}

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields or [])

    def get_field(self, name: str) -> MemconfigMember | None:
        return next((f for f in self.fields or [] if f.name == name), None)

    def has_action(self, name: str) -> bool:
        return any(a.name == name for a in self.actions or [])

    def has_event(self, name: str) -> bool:
        return any(e.name == name for e in self.events or [])


class MemconfigSchema(BaseModel):
    model_config = _STRICT

    types: list[MemconfigType]

    @model_validator(mode="after")
    def _require_root(self) -> MemconfigSchema:
        if not any(t.name == ROOT_TYPE for t in self.types):
            raise ValueError("Schema must include a Root type")
        return self


class Memconfig(BaseModel):
    """A parsed memconfig.json document."""

    model_config = _STRICT

    schema_: MemconfigSchema = Field(..., alias="schema")
    dependencies: dict[str, str] | None = None

    @field_validator("dependencies", mode="before")
    @classmethod
    def _no_nulls(cls, value: Any) -> Any:
        return _not_null(value)

    @property
    def types(self) -> list[MemconfigType]:
        return self.schema_.types

    def get_type(self, name: str) -> MemconfigType | None:
        return next((t for t in self.types if t.name == name), None)

    @property
    def root(self) -> MemconfigType:
        root = self.get_type(ROOT_TYPE)
        assert root is not None  # guaranteed by MemconfigSchema validation
        return root
