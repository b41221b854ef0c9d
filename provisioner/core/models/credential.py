"""
Credential models — config declarations and registered entries.

``CredentialSpec`` is what the config file declares. ``CredentialEntry``
is what the registry holds once the declared commands have been turned
into runnable procedures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, field_validator

if TYPE_CHECKING:
    from provisioner.core.services.procedures import Procedure


class CredentialSpec(BaseModel):
    """A credential declared in provision.yml."""

    name: str
    resolver: str | list[str]
    precondition: str | list[str] | None = None
    description: str = ""

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("credential name must not be empty")
        return v


@dataclass(frozen=True)
class CredentialEntry:
    """A registered credential: name, resolver, optional precondition.

    Whether the entry is resolved is not stored here; it is derived
    from the session environment at lookup time.
    """

    name: str
    resolver: Procedure
    precondition: Procedure | None = None
