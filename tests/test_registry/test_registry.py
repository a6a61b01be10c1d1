"""Tests for SourceDescriptor and SourceRegistry."""

import json

import pytest

from community_pulse.errors import NotFoundError
from community_pulse.registry.config import RegistryConfig
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry


class TestSourceDescriptor:
    def test_invalid_visibility_rejected(self):
        with pytest.raises(ValueError, match="Invalid visibility"):
            SourceDescriptor(id="X", display_name="X", visibility="secret")

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            SourceDescriptor(id="", display_name="X")

    def test_private_hides_invite(self):
        descriptor = SourceDescriptor(
            id="X", display_name="X", external_ref="https://discord.gg/x", visibility="private",
        )
        data = descriptor.to_dict()
        assert data["private"] is True
        assert data["invite"] is None

    def test_has_reference(self, public_source, private_source, unreferenced_private_source):
        assert public_source.has_reference
        assert private_source.has_reference
        assert not unreferenced_private_source.has_reference


class TestSourceRegistry:
    def test_preserves_order(self, registry):
        assert registry.ids == ["ALPHA", "BRAVO", "SECRET"]
        assert [d.id for d in registry] == registry.ids

    def test_duplicate_ids_rejected(self, public_source):
        with pytest.raises(ValueError, match="Duplicate"):
            SourceRegistry([public_source, public_source])

    def test_require_unknown_raises(self, registry):
        with pytest.raises(NotFoundError):
            registry.require("NOPE")

    def test_contains_and_get(self, registry):
        assert "ALPHA" in registry
        assert "NOPE" not in registry
        assert registry.get("NOPE") is None
        assert len(registry) == 3

    def test_find_by_provider_id(self, registry):
        assert registry.find_by_provider_id("900000000000000001").id == "SECRET"
        assert registry.find_by_provider_id("123") is None

    def test_bundled_seed_loads(self, monkeypatch):
        monkeypatch.delenv("WHITELIST_GUILD_ID", raising=False)
        monkeypatch.delenv("BADSIDE_GUILD_ID", raising=False)

        registry = SourceRegistry.from_json()

        assert len(registry) == 5
        assert registry.ids[0] == "CEOKOPAT_ALTER_EGO"
        whitelist = registry.require("MOTIONLIFE_WHITELIST")
        assert whitelist.is_private
        assert whitelist.provider_id is None

    def test_provider_id_from_env(self, monkeypatch):
        monkeypatch.setenv("WHITELIST_GUILD_ID", "424242")

        registry = SourceRegistry.from_json()

        assert registry.require("MOTIONLIFE_WHITELIST").provider_id == "424242"

    def test_env_lookup_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("WHITELIST_GUILD_ID", "424242")

        registry = SourceRegistry.from_json(config=RegistryConfig(env_provider_ids=False))

        assert registry.require("MOTIONLIFE_WHITELIST").provider_id is None

    def test_custom_path(self, tmp_path):
        path = tmp_path / "sources.json"
        path.write_text(json.dumps([
            {"id": "ONE", "external_ref": "abc"},
            {"id": "TWO", "display_name": "Two", "provider_id": "2", "visibility": "private"},
        ]))

        registry = SourceRegistry.from_json(path)

        assert registry.ids == ["ONE", "TWO"]
        assert registry.require("ONE").display_name == "ONE"
        assert registry.require("TWO").provider_id == "2"
