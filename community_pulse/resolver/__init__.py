"""Resolver: external references to provider ids."""

from community_pulse.resolver.resolver import SourceResolver

__all__ = ["SourceResolver"]
