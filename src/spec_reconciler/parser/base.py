"""Canonical data models shared by every importer and the reconciliation engine.

All parsers (OpenAPI, Swagger, Postman, cURL) convert their input into
these models; storage persists them and the engine compares them.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ParamLocation = Literal["path", "query", "header", "cookie"]
AuthType = Literal["bearer", "apiKey", "basic", "oauth2", "none"]


class CanonicalParameter(BaseModel):
    """A single API parameter (path, query, header, or cookie)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: ParamLocation = Field(default="query", alias="in")
    type: str = "string"  # string / integer / number / boolean / array / object
    required: bool = False
    description: str | None = None
    example: Any = None

    enum: list[Any] | None = None
    pattern: str | None = None
    min: int | float | None = None  # minimum, or minLength for strings
    max: int | float | None = None
    default: Any = None
    format: str | None = None  # date-time / email / uuid / uri ...
    items: "CanonicalField | None" = None

    @model_validator(mode="after")
    def _path_params_are_required(self) -> "CanonicalParameter":
        if self.location == "path":
            self.required = True
        return self


class CanonicalField(BaseModel):
    """A request or response body field; objects and arrays nest further fields."""

    name: str = ""
    type: str = "string"
    required: bool = False
    description: str | None = None
    format: str | None = None
    example: Any = None

    enum: list[Any] | None = None
    pattern: str | None = None
    min: int | float | None = None
    max: int | float | None = None

    properties: list["CanonicalField"] | None = None  # type == object
    items: "CanonicalField | None" = None  # type == array


CanonicalParameter.model_rebuild()


class RequestBody(BaseModel):
    required: bool = False
    description: str | None = None
    example: Any = None
    fields: list[CanonicalField] = []


class CanonicalRequest(BaseModel):
    content_type: str = "application/json"
    parameters: list[CanonicalParameter] = []
    body: RequestBody | None = None


class ResponseHeader(BaseModel):
    name: str
    type: str = "string"
    description: str | None = None
    example: Any = None


class SuccessResponse(BaseModel):
    status: int | None = 200
    description: str | None = None
    content_type: str | None = "application/json"
    example: Any = None
    fields: list[CanonicalField] = []
    headers: list[ResponseHeader] = []


class ErrorResponse(BaseModel):
    status: int
    reason: str = ""
    description: str | None = None
    content_type: str | None = None
    example: Any = None


class CanonicalResponses(BaseModel):
    success: SuccessResponse = Field(default_factory=SuccessResponse)
    errors: list[ErrorResponse] = []


class CanonicalAuth(BaseModel):
    """Authentication requirement of an endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    required: bool = True
    type: AuthType = "bearer"
    scheme: str | None = None  # bearer / basic, for HTTP auth
    bearer_format: str | None = None
    location: Literal["header", "query", "cookie"] | None = Field(default=None, alias="in")
    name: str | None = None  # Authorization / X-API-Key
    description: str | None = None


class CanonicalEndpoint(BaseModel):
    """A single API operation in the format-agnostic canonical shape."""

    id: int | None = None
    spec_id: int | None = None
    source: str = "manual"  # openapi / swagger / postman / curl / manual

    method: str = ""  # GET / POST / PUT / DELETE / PATCH
    path: str = ""  # /api/users/{id}
    name: str = ""
    description: str | None = None
    tags: list[str] = []
    operation_id: str | None = None

    request: CanonicalRequest = Field(default_factory=CanonicalRequest)
    responses: CanonicalResponses = Field(default_factory=CanonicalResponses)
    auth: CanonicalAuth | None = None

    deprecated: bool = False
    previous_endpoint_id: int | None = None  # row superseded by this one
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def key(self) -> tuple[str, str]:
        return (self.method.upper(), self.path)

    def is_well_formed(self) -> bool:
        return bool(self.method) and bool(self.path)


class Spec(BaseModel):
    """A named, versioned collection of endpoints."""

    id: int | None = None
    name: str
    version: str = "1.0.0"
    description: str | None = None
    base_url: str | None = None
    raw_spec: str = ""  # original uploaded document, kept for re-parsing
    format: str | None = None

    version_group: str = ""
    previous_version_id: int | None = None
    is_latest: bool = True

    created_at: datetime | None = None
    updated_at: datetime | None = None


class TestCase(BaseModel):
    """A stored test referencing an endpoint. Owned by the surrounding app."""

    __test__ = False  # keep pytest from collecting this model

    id: int | None = None
    spec_id: int
    name: str
    method: str = "GET"
    path: str = "/"

    source_endpoint_id: int | None = None  # immutable original link
    current_endpoint_id: int | None = None  # re-pointed on replace merges
    is_custom_endpoint: bool = False
    migrated_from: int | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
