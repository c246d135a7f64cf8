from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class AuthMethod(str, Enum):
    """Credential kind used to log in."""

    KEY = "key"
    PASSWORD = "password"


class Record(BaseModel):
    """Stored connection profile."""

    nickname: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    user: str
    auth_method: AuthMethod = AuthMethod.KEY
    key_path: str | None = None
    password: str | None = None

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def masked_password(self) -> str:
        return "*" * len(self.password or "")

    def summary(self) -> str:
        """Return tab-separated line: nickname, user@host:port, auth method."""
        return f"{self.nickname}\t{self.target}:{self.port}\t{self.auth_method.value}"

    def to_document(self) -> dict:
        """Return JSON-ready dict without empty optional fields."""
        data = self.model_dump(mode="json", exclude_none=True)
        for field in ("key_path", "password"):
            if data.get(field) == "":
                del data[field]
        return data


class RecordPatch(BaseModel):
    """Partial update for a record. Empty or zero values mean "leave as is"."""

    host: str | None = None
    port: int | None = None
    user: str | None = None
    auth_method: AuthMethod | None = None
    key_path: str | None = None
    password: str | None = None

    def apply(self, record: Record) -> Record:
        """Return a copy of record with every non-empty patch field written over it."""
        changes = {name: value for name, value in self.model_dump().items() if value}
        # model_copy(update=...) skips validation
        return Record.model_validate({**record.model_dump(), **changes})
