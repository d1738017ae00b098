"""Key database storage settings."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class StorageSettings(BaseModel):
    """Location of the durable key database."""

    database_file: Path = Field(
        default=Path("keys_database.json"),
        description="JSON file holding every issued key record",
    )

    @field_validator("database_file", mode="after")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()
