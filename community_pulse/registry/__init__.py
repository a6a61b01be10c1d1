"""Registry: the static list of trackable communities."""

from community_pulse.registry.config import RegistryConfig
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry

__all__ = [
    "RegistryConfig",
    "SourceDescriptor",
    "SourceRegistry",
]
