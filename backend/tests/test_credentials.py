"""Tests for ordered credential resolution."""

import json

import pytest

from app.services.tools.base import ToolSpec
from app.services.tools.credentials import (
    CredentialResolver,
    default_path_provider,
    from_environment,
    from_explicit_path,
    store_provider,
)

SPEC = ToolSpec(name="claude", command="claude", credential_env="ANTHROPIC_API_KEY")


@pytest.fixture
def resolver(tmp_path):
    return CredentialResolver(
        [
            from_explicit_path,
            from_environment,
            store_provider(tmp_path / "store.json"),
            default_path_provider(tmp_path / "config"),
        ]
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


class TestProviders:
    def test_explicit_bare_secret(self, tmp_path, resolver):
        key_file = tmp_path / "key.txt"
        key_file.write_text("sk-explicit\n")
        assert resolver.resolve(SPEC, str(key_file)) == {"ANTHROPIC_API_KEY": "sk-explicit"}

    def test_explicit_json_mapping(self, tmp_path, resolver):
        key_file = tmp_path / "creds.json"
        key_file.write_text(json.dumps({"ANTHROPIC_API_KEY": "sk-json", "ANTHROPIC_BASE_URL": "http://proxy"}))
        assert resolver.resolve(SPEC, str(key_file)) == {
            "ANTHROPIC_API_KEY": "sk-json",
            "ANTHROPIC_BASE_URL": "http://proxy",
        }

    def test_explicit_json_mapping_without_credential_env(self, tmp_path, resolver):
        spec = ToolSpec(name="local", command="local")
        key_file = tmp_path / "creds.json"
        key_file.write_text(json.dumps({"LOCAL_TOKEN": "tok"}))
        assert resolver.resolve(spec, str(key_file)) == {"LOCAL_TOKEN": "tok"}

    def test_explicit_bare_secret_without_credential_env(self, tmp_path, resolver):
        spec = ToolSpec(name="local", command="local")
        key_file = tmp_path / "key.txt"
        key_file.write_text("tok\n")
        assert resolver.resolve(spec, str(key_file)) == {}

    def test_environment(self, resolver, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        assert resolver.resolve(SPEC) == {"ANTHROPIC_API_KEY": "sk-env"}

    def test_store(self, tmp_path, resolver):
        (tmp_path / "store.json").write_text(json.dumps({"claude": {"ANTHROPIC_API_KEY": "sk-store"}}))
        assert resolver.resolve(SPEC) == {"ANTHROPIC_API_KEY": "sk-store"}

    def test_default_path(self, tmp_path, resolver):
        key_dir = tmp_path / "config" / "claude"
        key_dir.mkdir(parents=True)
        (key_dir / "api_key").write_text("sk-default")
        assert resolver.resolve(SPEC) == {"ANTHROPIC_API_KEY": "sk-default"}


class TestOrdering:
    def test_first_success_wins(self, tmp_path, resolver, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        (tmp_path / "store.json").write_text(json.dumps({"claude": {"ANTHROPIC_API_KEY": "sk-store"}}))
        key_file = tmp_path / "key.txt"
        key_file.write_text("sk-explicit")

        assert resolver.resolve(SPEC, str(key_file)) == {"ANTHROPIC_API_KEY": "sk-explicit"}
        assert resolver.resolve(SPEC) == {"ANTHROPIC_API_KEY": "sk-env"}

    def test_missing_explicit_path_falls_through(self, tmp_path, resolver):
        (tmp_path / "store.json").write_text(json.dumps({"claude": {"ANTHROPIC_API_KEY": "sk-store"}}))
        assert resolver.resolve(SPEC, str(tmp_path / "nope")) == {"ANTHROPIC_API_KEY": "sk-store"}

    def test_malformed_store_is_skipped(self, tmp_path, resolver):
        (tmp_path / "store.json").write_text("{not json")
        assert resolver.resolve(SPEC) == {}

    def test_nothing_found(self, resolver):
        assert resolver.resolve(SPEC) == {}

    def test_tool_without_credentials(self, resolver):
        spec = ToolSpec(name="local", command="local")
        assert resolver.resolve(spec) == {}
