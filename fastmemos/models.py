"""
FastMemos Models - Memo visibility, drafts, and the create-memo payload.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum

from .errors import MemosError, ErrorCode


class Visibility(str, Enum):
    """Access scope of a memo. Values are the server's wire strings."""
    PRIVATE = "PRIVATE"
    PROTECTED = "PROTECTED"
    PUBLIC = "PUBLIC"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        return VISIBILITY_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: "str | Visibility") -> "Visibility":
        """Parse a wire value or display name, case-insensitively."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            choices = ", ".join(v.value.lower() for v in cls)
            raise ValueError(f"Unknown visibility '{value}' (expected one of: {choices})") from None


VISIBILITY_DESCRIPTIONS = {
    Visibility.PRIVATE: "Only you can see",
    Visibility.PROTECTED: "Anyone with link",
    Visibility.PUBLIC: "Visible to everyone",
}


@dataclass
class CreateMemoRequest:
    """Request body for POST /api/v1/memos."""
    content: str
    visibility: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MemoDraft:
    """A memo being composed. Never persisted."""
    content: str = ""
    visibility: Visibility = Visibility.PRIVATE

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def char_count(self) -> int:
        return len(self.content)

    def validate(self) -> None:
        """Raise EMPTY_CONTENT if there is nothing to send."""
        if self.is_empty:
            raise MemosError(ErrorCode.EMPTY_CONTENT)

    def to_request(self) -> CreateMemoRequest:
        self.validate()
        return CreateMemoRequest(content=self.content, visibility=self.visibility.value)

    def clear(self) -> None:
        self.content = ""
