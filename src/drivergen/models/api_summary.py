"""Structured summary of an analyzed REST API.

The summary is produced by the analysis agent from LLM output, so parsing is
lenient: unknown keys are ignored, every key has a default and ``null``
lists are read as empty.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_LENIENT = ConfigDict(extra="ignore", populate_by_name=True)

_NO_PAGINATION = {"", "none", "null", "no", "false"}


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


class ApiParameter(BaseModel):
    model_config = _LENIENT

    name: str
    type: str = "string"
    required: bool = False
    description: str = ""


class ApiEndpoint(BaseModel):
    """One HTTP operation of the API."""

    model_config = _LENIENT

    path: str
    method: str = "GET"
    description: str = ""
    parameters: list[ApiParameter] = Field(default_factory=list)
    request_body: dict[str, Any] | None = Field(default=None, alias="requestBody")
    response_type: str = Field(default="", alias="responseType")
    response_structure: Any = Field(default=None, alias="responseStructure")
    rate_limit: dict[str, Any] | None = Field(default=None, alias="rateLimit")

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_list(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class ApiModelField(BaseModel):
    model_config = _LENIENT

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True


class ApiDataModel(BaseModel):
    """A resource or payload shape described by the API."""

    model_config = _LENIENT

    name: str
    fields: list[ApiModelField] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def _fields_list(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def required_fields(self) -> list[ApiModelField]:
        return [f for f in self.fields if f.required]


class PaginationInfo(BaseModel):
    model_config = _LENIENT

    type: str = "none"
    parameters: list[Any] = Field(default_factory=list)

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_list(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("type", mode="before")
    @classmethod
    def _none_type(cls, value: Any) -> Any:
        return "none" if value is None else value

    @property
    def is_paginated(self) -> bool:
        return self.type.strip().lower() not in _NO_PAGINATION


class WebhookInfo(BaseModel):
    model_config = _LENIENT

    supported: bool = False
    events: list[str] = Field(default_factory=list)
    payload: Any = None

    @field_validator("events", mode="before")
    @classmethod
    def _events_list(cls, value: Any) -> Any:
        return _none_to_list(value)


class ApiSummary(BaseModel):
    """Everything the validator and the generators need to know about an API."""

    model_config = _LENIENT

    base_url: str = Field(default="", alias="baseUrl")
    auth_methods: list[str] = Field(default_factory=list, alias="authMethods")
    api_version: str = Field(default="", alias="apiVersion")
    endpoints: list[ApiEndpoint] = Field(default_factory=list)
    pagination: PaginationInfo = Field(default_factory=PaginationInfo)
    error_handling: Any = Field(default=None, alias="errorHandling")
    data_models: list[ApiDataModel] = Field(default_factory=list, alias="dataModels")
    webhooks: WebhookInfo = Field(default_factory=WebhookInfo)
    special_notes: list[str] = Field(default_factory=list, alias="specialNotes")

    @field_validator(
        "auth_methods", "endpoints", "data_models", "special_notes", mode="before"
    )
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("pagination", "webhooks", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def from_data(cls, data: ApiSummary | dict[str, Any] | None) -> ApiSummary:
        """Build a summary from a parsed dict, an existing summary or nothing."""
        if isinstance(data, ApiSummary):
            return data
        return cls.model_validate(data or {})
