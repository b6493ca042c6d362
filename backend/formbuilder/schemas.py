from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Annotated, Any, Dict, List, Literal, Optional
from datetime import datetime
import re


FieldType = Literal["text", "textarea", "select", "radio", "checkbox", "email", "number", "date"]

FIELD_TYPES = ("text", "textarea", "select", "radio", "checkbox", "email", "number", "date")
CHOICE_FIELD_TYPES = ("select", "radio")
TEXT_FIELD_TYPES = ("text", "textarea", "email")

DEFAULT_TITLE = "Untitled Form"


class FieldValidation(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    message: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def pattern_must_compile(cls, v):
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid pattern: {e}")
        return v


class FieldStyle(BaseModel):
    # unknown keys are kept so newer clients can round-trip their styling
    model_config = ConfigDict(extra="allow")

    width: Optional[str] = None
    fontSize: Optional[str] = None
    color: Optional[str] = None
    backgroundColor: Optional[str] = None
    borderColor: Optional[str] = None
    borderRadius: Optional[str] = None


class FormField(BaseModel):
    id: str
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[str]] = None
    validation: Optional[FieldValidation] = None
    style: FieldStyle = Field(default_factory=FieldStyle)

    @model_validator(mode="after")
    def options_for_choice_fields_only(self):
        if self.type in CHOICE_FIELD_TYPES:
            if self.options is None:
                self.options = []
        else:
            self.options = None
        return self


class FormStyle(BaseModel):
    """Form-level presentation plus the submit/upload/progress settings."""

    model_config = ConfigDict(extra="allow")

    backgroundColor: str = "#ffffff"
    textColor: str = "#000000"
    fontFamily: str = "Inter"
    primaryColor: str = "#3b82f6"
    submitButtonText: str = "Submit"
    submitButtonColor: str = "#3b82f6"
    submitButtonTextColor: str = "#ffffff"
    showProgress: bool = False
    showFieldNumbers: bool = False
    allowFileUploads: bool = False
    maxFileSize: int = 10  # MB
    allowedFileTypes: List[str] = Field(default_factory=lambda: [".jpg", ".jpeg", ".png", ".pdf"])


def _check_unique_field_ids(fields: Optional[List[FormField]]) -> Optional[List[FormField]]:
    if not fields:
        return fields
    seen = set()
    for field in fields:
        if field.id in seen:
            raise ValueError(f"Duplicate field id: {field.id}")
        seen.add(field.id)
    return fields


FieldList = Annotated[List[FormField], AfterValidator(_check_unique_field_ids)]


class FormCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[FieldList] = None
    # older clients send the style block as "settings"
    style: Optional[FormStyle] = Field(default=None, validation_alias=AliasChoices("style", "settings"))


class FormUpdate(FormCreate):
    isPublished: Optional[bool] = None


class Form(BaseModel):
    id: str
    title: str = DEFAULT_TITLE
    description: str = ""
    fields: FieldList = Field(default_factory=list)
    style: FormStyle = Field(default_factory=FormStyle, validation_alias=AliasChoices("style", "settings"))
    isPublished: bool = False
    createdAt: datetime
    updatedAt: datetime

    def field_ids(self) -> List[str]:
        return [field.id for field in self.fields]


class SubmissionIn(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class FormSubmission(BaseModel):
    id: str
    formId: str
    data: Dict[str, Any] = Field(default_factory=dict)
    submittedAt: datetime


class FieldAnalytics(BaseModel):
    fieldId: str
    fieldLabel: str
    fieldType: FieldType
    responses: int
    mostCommonValue: Any = None


class FormAnalytics(BaseModel):
    formId: str
    totalSubmissions: int
    submissionsToday: int
    submissionsThisWeek: int
    submissionsThisMonth: int
    completionRate: int
    fieldAnalytics: List[FieldAnalytics]
    submissionTrend: Dict[str, int]


class ExportOut(BaseModel):
    format: Literal["json"] = "json"
    data: List[FormSubmission]
    exportedAt: datetime


class MessageOut(BaseModel):
    message: str
