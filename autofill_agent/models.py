from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FieldType(str, Enum):
    input = "input"
    select = "select"
    textarea = "textarea"
    checkbox = "checkbox"
    radio = "radio"
    submit = "submit"


class AuthMethod(str, Enum):
    manual = "manual"
    credentials = "credentials"
    cookies = "cookies"
    session = "session"


class LogLevel(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class _WireModel(BaseModel):
    """Accepts both the camelCase wire names and the Python attribute names."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class FormField(_WireModel):
    id: str = ""
    selector: str = Field(..., min_length=1, description="CSS selector of the form control")
    value: str = ""
    type: Union[FieldType, str] = Field(
        default=FieldType.input,
        union_mode="left_to_right",
        description="input|select|textarea|checkbox|radio|submit; anything else is typed into",
    )


class DetectedField(FormField):
    name: Optional[str] = None
    placeholder: Optional[str] = None
    label: Optional[str] = None


class Credentials(_WireModel):
    username: Optional[str] = None
    password: Optional[str] = None
    username_selector: Optional[str] = Field(default=None, alias="usernameSelector")
    password_selector: Optional[str] = Field(default=None, alias="passwordSelector")
    submit_selector: Optional[str] = Field(default=None, alias="submitSelector")


class AuthenticationConfig(_WireModel):
    enabled: bool = False
    method: AuthMethod = AuthMethod.manual
    credentials: Optional[Credentials] = None
    cookies: Optional[str] = Field(default=None, description="JSON-encoded array of cookie objects")
    session_data: Optional[str] = Field(
        default=None,
        alias="sessionData",
        description="JSON-encoded {localStorage?, sessionStorage?} maps",
    )
    wait_after_login: Optional[int] = Field(default=None, alias="waitAfterLogin", ge=0)


class AutomationConfig(_WireModel):
    url: str = ""
    load_delay: int = Field(default=0, alias="loadDelay", ge=0)
    fields: List[FormField] = Field(default_factory=list)
    authentication: Optional[AuthenticationConfig] = None
    name: Optional[str] = None
    description: Optional[str] = None


class ElementSnapshot(_WireModel):
    """Raw attributes of one DOM element as collected by the in-page scan."""

    tag: str
    id: Optional[str] = None
    name: Optional[str] = None
    classes: List[str] = Field(default_factory=list)
    type: Optional[str] = None
    text: str = ""
    placeholder: Optional[str] = None
    label: str = ""
    same_tag_index: int = Field(default=1, alias="sameTagIndex", ge=1)
    has_parent: bool = Field(default=True, alias="hasParent")


class LogEvent(_WireModel):
    timestamp: str
    level: LogLevel = LogLevel.info
    message: str
    selector: Optional[str] = None


class AutomationResult(_WireModel):
    message: str
    fields_processed: int = Field(alias="fieldsProcessed")
    screenshot: str = Field(description="Base64-encoded full-page PNG")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    logs: List[LogEvent] = Field(default_factory=list)


class DetectRequest(_WireModel):
    url: str = ""


class DetectResponse(_WireModel):
    success: bool
    fields: List[DetectedField] = Field(default_factory=list)
    message: str


class ImportResult(_WireModel):
    config: AutomationConfig
    test_values: List[str] = Field(default_factory=list, alias="testValues")


class TestRunRequest(_WireModel):
    config: AutomationConfig
    test_value: str = Field(..., alias="testValue")


class SessionInfo(_WireModel):
    session_id: str = Field(alias="sessionId")
    url: str
    created_at: str = Field(alias="createdAt")
