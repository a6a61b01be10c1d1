"""Source registry loaded once from a JSON seed file."""

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from community_pulse.errors import NotFoundError
from community_pulse.registry.config import RegistryConfig
from community_pulse.registry.schemas import SourceDescriptor

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def _parse_seed_entry(entry: dict, allow_env: bool = True) -> SourceDescriptor:
    """Convert a JSON seed entry to a SourceDescriptor."""
    provider_id = entry.get("provider_id")
    env_name = entry.get("provider_id_env")
    if provider_id is None and env_name and allow_env:
        provider_id = os.environ.get(env_name) or None

    return SourceDescriptor(
        id=entry["id"],
        display_name=entry.get("display_name") or entry["id"],
        external_ref=entry.get("external_ref"),
        provider_id=provider_id,
        visibility=entry.get("visibility", "public"),
        role=entry.get("role", ""),
        category=entry.get("category", ""),
        language=entry.get("language", ""),
        description=entry.get("description", ""),
    )


class SourceRegistry:
    """Ordered, read-only collection of source descriptors.

    Registry order is the order used by ``SnapshotCache.get_all()`` and
    by every list-shaped API response.
    """

    def __init__(self, descriptors: list[SourceDescriptor]) -> None:
        self._by_id: dict[str, SourceDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._by_id:
                raise ValueError(f"Duplicate source id {descriptor.id!r}")
            self._by_id[descriptor.id] = descriptor
        self._order = [d.id for d in descriptors]

    @classmethod
    def from_json(
        cls,
        path: Path | str | None = None,
        config: RegistryConfig | None = None,
    ) -> "SourceRegistry":
        """Load descriptors from a JSON list.

        Args:
            path: File to read. Falls back to ``config.path`` and then to
                the bundled seed file.
            config: Registry configuration.
        """
        config = config or RegistryConfig()
        seed_path = Path(path or config.path or _SEED_FILE)
        with open(seed_path, encoding="utf-8") as f:
            entries = json.load(f)

        descriptors = [
            _parse_seed_entry(e, allow_env=config.env_provider_ids) for e in entries
        ]
        logger.info("Loaded %d sources from %s", len(descriptors), seed_path)
        return cls(descriptors)

    def __iter__(self) -> Iterator[SourceDescriptor]:
        return (self._by_id[source_id] for source_id in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._by_id

    @property
    def ids(self) -> list[str]:
        return list(self._order)

    def get(self, source_id: str) -> SourceDescriptor | None:
        return self._by_id.get(source_id)

    def require(self, source_id: str) -> SourceDescriptor:
        """Get a descriptor or raise NotFoundError."""
        descriptor = self._by_id.get(source_id)
        if descriptor is None:
            raise NotFoundError(source_id)
        return descriptor

    def find_by_provider_id(self, provider_id: str) -> SourceDescriptor | None:
        """Match a configured (not resolved) provider id."""
        for descriptor in self:
            if descriptor.provider_id == provider_id:
                return descriptor
        return None
