from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from linkflow.core.config import settings


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase"""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def _id_to_str(v: Any) -> Any:
    # Backend ids arrive as ints (database rows) or strings (provider ids)
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class CamelCaseModel(BaseModel):
    """Base model with camelCase alias configuration"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class FrozenModel(BaseModel):
    """Immutable record validated once on ingress"""

    model_config = ConfigDict(frozen=True, extra="ignore")


class LinkMode(str, Enum):
    NORMAL = "normal"
    UPDATE = "update"


class FlowState(str, Enum):
    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    TOKEN_READY = "token_ready"
    WIDGET_OPEN = "widget_open"
    EXCHANGING = "exchanging"
    LINKED = "linked"
    ERROR = "error"


# Domain records
class User(FrozenModel):
    id: int
    username: str


class Account(FrozenModel):
    id: str
    name: str
    mask: Optional[str] = None
    type: str = ""
    subtype: Optional[str] = None

    coerce_id = field_validator("id", mode="before")(_id_to_str)

    @field_validator("mask", "subtype", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("type", mode="before")
    @classmethod
    def none_type_to_blank(cls, v):
        return "" if v is None else v


class Item(FrozenModel):
    """One successful linking of one institution for one user."""

    id: str
    institution: str
    accounts: Tuple[Account, ...] = ()

    coerce_id = field_validator("id", mode="before")(_id_to_str)

    @field_validator("accounts", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return () if v is None else v


class Transaction(FrozenModel):
    id: str
    date: datetime
    name: str
    amount: Decimal
    type: str = ""
    category: str = Field(default_factory=lambda: settings.missing_category_label)
    pending: bool = False

    coerce_id = field_validator("id", mode="before")(_id_to_str)

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return settings.missing_category_label
        return v

    @field_validator("type", mode="before")
    @classmethod
    def none_type_to_blank(cls, v):
        return "" if v is None else v


class LinkSession(FrozenModel):
    """Transient link attempt fields; exactly one per user interaction."""

    mode: LinkMode = LinkMode.NORMAL
    token: Optional[str] = None
    selected_item_id: Optional[str] = None


# Widget payloads
class InstitutionMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    institution_id: Optional[str] = None


class WidgetMetadata(BaseModel):
    """Metadata handed to the success callback by the linking widget."""

    model_config = ConfigDict(extra="allow")

    institution: Optional[InstitutionMetadata] = None
    link_session_id: Optional[str] = None

    def institution_name(self, fallback: str) -> str:
        if self.institution is not None and self.institution.name:
            return self.institution.name
        return fallback


class WidgetError(BaseModel):
    """Error object handed to the exit callback by the linking widget."""

    model_config = ConfigDict(extra="allow")

    error_code: Optional[str] = None
    error_message: str = "unknown widget error"
    display_message: Optional[str] = None

    @classmethod
    def coerce(cls, error: Union["WidgetError", Mapping[str, Any], str, BaseException]) -> "WidgetError":
        if isinstance(error, cls):
            return error
        if isinstance(error, Mapping):
            data = dict(error)
            # Plain {"message": ...} objects come from generic JS errors
            if "error_message" not in data and "message" in data:
                data["error_message"] = data["message"]
            return cls.model_validate(data)
        return cls(error_message=str(error))


# Backend requests
class CreateUserRequest(CamelCaseModel):
    username: str


class LinkTokenRequest(CamelCaseModel):
    user_id: int
    item_id: Optional[Union[int, str]] = None


class ExchangeTokenRequest(CamelCaseModel):
    public_token: str
    user_id: int


# Backend responses
class LinkTokenResponse(BaseModel):
    link_token: str = Field(..., min_length=1)


class ExchangeResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    item_id: str
    accounts: List[Account] = Field(default_factory=list)

    coerce_id = field_validator("item_id", mode="before")(_id_to_str)

    @field_validator("accounts", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v


class BackendItem(BaseModel):
    """Item row as listed by the backend for a user."""

    model_config = ConfigDict(extra="ignore")

    id: str
    institution_name: Optional[str] = None
    plaid_institution_id: Optional[str] = None
    accounts: List[Account] = Field(default_factory=list)

    coerce_id = field_validator("id", mode="before")(_id_to_str)

    @field_validator("accounts", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v

    def to_item(self, fallback_institution: str) -> Item:
        return Item(
            id=self.id,
            institution=self.institution_name or fallback_institution,
            accounts=tuple(self.accounts),
        )


class TransactionsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: List[Transaction] = Field(default_factory=list)

    @field_validator("transactions", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v
