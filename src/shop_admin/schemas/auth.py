from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .catalog import CamelModel


class LoginCredentials(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SessionIdentity(CamelModel):
    id: Optional[Union[int, str]] = None
    username: str = ""
    email: str = ""
    role: str = ""
    token: Optional[str] = Field(default=None, repr=False)

    def public_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"token"}, exclude_none=True)


__all__ = ["LoginCredentials", "SessionIdentity"]
