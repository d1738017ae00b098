"""CORS configuration settings."""

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from key_gate.core.validators import parse_comma_separated


class CORSSettings(BaseModel):
    """Cross-origin access for the embeddable key widget.

    Every origin is allowed by default since the widget runs on third-party
    pages. Credentials cannot be combined with a wildcard origin and are
    switched off in that case.
    """

    origins: list[str] = Field(default_factory=lambda: ["*"])
    credentials: bool = Field(default=False)
    methods: list[str] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    headers: list[str] = Field(default_factory=lambda: ["*"])
    max_age: int = Field(default=600, ge=0, description="Preflight cache seconds")

    @field_validator("origins", "methods", "headers", mode="before")
    @classmethod
    def split_lists(cls, v: Any) -> Any:
        if isinstance(v, str | list):
            return parse_comma_separated(v)
        return v

    @field_validator("methods", mode="after")
    @classmethod
    def upper_methods(cls, v: list[str]) -> list[str]:
        return [method.upper() for method in v]

    @model_validator(mode="after")
    def drop_credentials_for_wildcard(self) -> "CORSSettings":
        if "*" in self.origins and self.credentials:
            self.credentials = False
        return self
