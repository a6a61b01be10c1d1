"""Data models for the source registry."""

from dataclasses import dataclass
from typing import Literal

Visibility = Literal["public", "private"]

VALID_VISIBILITIES: frozenset[str] = frozenset({"public", "private"})


@dataclass(frozen=True)
class SourceDescriptor:
    """A trackable community, immutable after the registry is loaded.

    Attributes:
        id: Stable registry identifier (cache and tracker key).
        display_name: Human-readable community name.
        external_ref: Optional token resolved to a provider id each cycle
            (e.g. an invite URL or code).
        provider_id: Optional upstream id used directly when there is no
            external reference.
        visibility: ``public`` or ``private``. Private sources never expose
            raw counts through the API.
        role: Owner's role in the community.
        category: Free-form grouping label.
        language: Primary community language.
        description: Short description shown to viewers.
    """

    id: str
    display_name: str
    external_ref: str | None = None
    provider_id: str | None = None
    visibility: Visibility = "public"
    role: str = ""
    category: str = ""
    language: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Source id must be non-empty")
        if self.visibility not in VALID_VISIBILITIES:
            raise ValueError(
                f"Invalid visibility {self.visibility!r}. "
                f"Must be one of: {sorted(VALID_VISIBILITIES)}"
            )

    @property
    def is_private(self) -> bool:
        return self.visibility == "private"

    @property
    def has_reference(self) -> bool:
        """Whether the resolver has anything to work with."""
        return bool(self.external_ref or self.provider_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "role": self.role,
            "invite": self.external_ref if not self.is_private else None,
            "private": self.is_private,
            "category": self.category,
            "language": self.language,
            "description": self.description,
        }
