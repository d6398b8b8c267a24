from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

"""Registry snapshots (clients and product lines) as seen by the matcher.

Source records name their display field inconsistently. The accessor
fallbacks below are applied once, at the repository boundary, so the matcher
only ever sees ``Client.display_name``.
"""

__all__ = [
    "CLIENT_NAME_FIELDS",
    "Client",
    "ProductLine",
    "resolve_display_name",
]

# Checked in order; first non-blank value wins.
CLIENT_NAME_FIELDS: tuple[str, ...] = (
    "name",
    "companyName",
    "company_name",
    "legalName",
    "legal_name",
)


def resolve_display_name(raw: Mapping[str, Any], fields: tuple[str, ...] = CLIENT_NAME_FIELDS) -> str:
    for key in fields:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


@dataclass(frozen=True)
class Client:
    id: str
    display_name: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> Client:
        return cls(id=str(raw["id"]), display_name=resolve_display_name(raw))


@dataclass(frozen=True)
class ProductLine:
    id: str
    name: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProductLine:
        name = raw.get("name")
        return cls(id=str(raw["id"]), name=name.strip() if isinstance(name, str) else "")
