"""
Bank catalog value types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable


@dataclass(frozen=True)
class Institution:
    code: int
    name: str
    full_name: str
    ispb: str

    def matches(self, needle: str) -> bool:
        """
        Case-insensitive substring match on code, name, full name and ISPB.
        `needle` must already be lower-cased.
        """
        return (
            needle in str(self.code)
            or needle in self.name.lower()
            or needle in self.full_name.lower()
            or needle in self.ispb.lower()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "fullName": self.full_name,
            "ispb": self.ispb,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Institution":
        return cls(
            code=int(data["code"]),
            name=str(data.get("name") or ""),
            full_name=str(data.get("fullName") or ""),
            ispb=str(data.get("ispb") or ""),
        )


@dataclass(frozen=True)
class CatalogSnapshot:
    institutions: tuple[Institution, ...]
    fetched_at: datetime

    @classmethod
    def build(cls, items: Iterable[Institution], fetched_at: datetime) -> "CatalogSnapshot":
        # Duplicate codes: last occurrence wins, position of the first one is kept.
        by_code: dict[int, Institution] = {}
        for item in items:
            by_code[item.code] = item
        return cls(institutions=tuple(by_code.values()), fetched_at=fetched_at)

    def codes(self) -> set[int]:
        return {item.code for item in self.institutions}

    def has_code(self, code: int) -> bool:
        return any(item.code == code for item in self.institutions)

    def __len__(self) -> int:
        return len(self.institutions)
