"""api-cli models - collection, environment and request definitions.

Definitions are YAML documents validated into pydantic models. Auth and
body are tagged by their ``type`` key; each variant knows how to render
and encode itself so the request builder dispatches exactly once.
"""

import base64
import binascii
import json
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    RootModel,
    field_validator,
)

from api_cli.errors import ConfigurationError
from api_cli.templating import render

# ── Key-value lists ──────────────────────────────────────────────────────


class KeyValuePair(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    key: str
    value: str = ""
    enabled: bool | None = None

    @property
    def active(self) -> bool:
        """An entry is active unless explicitly disabled."""
        return self.enabled is None or self.enabled


class KeyValueList(RootModel[list[KeyValuePair]]):
    """Ordered (key, value, enabled) entries used for headers, params and vars."""

    root: list[KeyValuePair] = Field(default_factory=list)

    @field_validator("root", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_pairs(cls, pairs: dict[str, str] | list[tuple[str, str]]) -> "KeyValueList":
        if isinstance(pairs, dict):
            pairs = list(pairs.items())
        return cls([KeyValuePair(key=k, value=v, enabled=True) for k, v in pairs])

    def items(self) -> list[KeyValuePair]:
        """Active entries, in list order."""
        return [p for p in self.root if p.active]

    def as_map(self) -> dict[str, str]:
        """Active entries collapsed to a dict; a later key overwrites an earlier one."""
        return {p.key: p.value for p in self.items()}

    def as_tuples(self) -> list[tuple[str, str]]:
        """Active entries as (key, value) pairs, duplicates kept."""
        return [(p.key, p.value) for p in self.items()]


# ── Auth ─────────────────────────────────────────────────────────────────


class NoAuth(BaseModel):
    type: Literal["none"] = "none"

    def headers(self, scope: dict[str, str]) -> dict[str, str]:
        return {}


class BasicAuth(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    type: Literal["basic"] = "basic"
    username: str
    password: str = ""

    def headers(self, scope: dict[str, str]) -> dict[str, str]:
        username = render(self.username, scope)
        password = render(self.password, scope)
        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        return {"Authorization": f"Basic {credentials}"}


class BearerAuth(BaseModel):
    type: Literal["bearer"] = "bearer"
    token: str

    def headers(self, scope: dict[str, str]) -> dict[str, str]:
        return {"Authorization": f"Bearer {render(self.token, scope)}"}


Auth = Annotated[NoAuth | BasicAuth | BearerAuth, Field(discriminator="type")]


# ── Body ─────────────────────────────────────────────────────────────────
#
# encode() returns (content_type, kwargs) where kwargs go straight into
# requests.Request: either "data" (bytes / dict) or "json". The content type
# replaces a user Content-Type header only when force_content_type is set.


class TextBody(BaseModel):
    type: Literal["text"] = "text"
    force_content_type: ClassVar[bool] = True
    text: str

    def encode(self, scope: dict[str, str]) -> tuple[str, dict[str, Any]]:
        return "text/plain", {"data": render(self.text, scope).encode("utf-8")}


class JsonBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["json"] = "json"
    force_content_type: ClassVar[bool] = False
    json_value: JsonValue = Field(alias="json")

    def encode(self, scope: dict[str, str]) -> tuple[str, dict[str, Any]]:
        # Templates live inside JSON string literals, so the document is
        # rendered as text and parsed back.
        rendered = render(json.dumps(self.json_value), scope)
        try:
            value = json.loads(rendered)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"JSON body is invalid after rendering: {e}") from e
        return "application/json", {"json": value}


class GraphQLQuery(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    query: str
    variables: dict[str, str] = Field(default_factory=dict)

    @field_validator("variables", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class GraphQLBody(BaseModel):
    type: Literal["graphql"] = "graphql"
    force_content_type: ClassVar[bool] = False
    graphql: GraphQLQuery

    def encode(self, scope: dict[str, str]) -> tuple[str, dict[str, Any]]:
        # Variables are rendered against the request scope only; they cannot
        # reference each other.
        variables = {
            render(k, scope): render(v, scope) for k, v in self.graphql.variables.items()
        }
        payload = {"query": render(self.graphql.query, scope), "variables": variables}
        return "application/json", {"json": payload}


class BinaryBody(BaseModel):
    type: Literal["binary"] = "binary"
    force_content_type: ClassVar[bool] = True
    binary: str

    def encode(self, scope: dict[str, str]) -> tuple[str, dict[str, Any]]:
        rendered = render(self.binary, scope)
        try:
            data = base64.b64decode(rendered, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError(f"Binary body is not valid base64: {e}") from e
        # Kept as form-urlencoded for compatibility with existing collections.
        return "application/x-www-form-urlencoded", {"data": data}


class FormBody(BaseModel):
    type: Literal["form"] = "form"
    force_content_type: ClassVar[bool] = False
    form: KeyValueList = Field(default_factory=KeyValueList)

    def encode(self, scope: dict[str, str]) -> tuple[str, dict[str, Any]]:
        fields = {render(p.key, scope): render(p.value, scope) for p in self.form.items()}
        return "application/x-www-form-urlencoded", {"data": fields}


Body = Annotated[
    TextBody | JsonBody | GraphQLBody | BinaryBody | FormBody,
    Field(discriminator="type"),
]


# ── Definitions ──────────────────────────────────────────────────────────


class CollectionModel(BaseModel):
    headers: KeyValueList = Field(default_factory=KeyValueList)
    auth: Auth | None = None
    vars: KeyValueList = Field(default_factory=KeyValueList)


class EnvironmentModel(BaseModel):
    vars: KeyValueList = Field(default_factory=KeyValueList)


class HttpParamsModel(BaseModel):
    query: KeyValueList = Field(default_factory=KeyValueList)


class HttpRequestModel(BaseModel):
    # Validated against the HTTP method enumeration when the request is built.
    method: str = "GET"
    url: str = ""
    auth: Auth | None = None
    headers: KeyValueList = Field(default_factory=KeyValueList)
    params: HttpParamsModel = Field(default_factory=HttpParamsModel)
    body: Body | None = None


class RequestVarsModel(BaseModel):
    pre_request: KeyValueList = Field(
        default_factory=KeyValueList,
        validation_alias=AliasChoices("pre-request", "pre_request"),
        serialization_alias="pre-request",
    )
    # Parsed but never executed.
    post_request: KeyValueList = Field(
        default_factory=KeyValueList,
        validation_alias=AliasChoices("post-request", "post_request"),
        serialization_alias="post-request",
    )


class RequestModel(BaseModel):
    http: HttpRequestModel = Field(default_factory=HttpRequestModel)
    vars: RequestVarsModel = Field(default_factory=RequestVarsModel)
