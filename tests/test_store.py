"""Tests for credential persistence."""

import json
import os

import pytest

from auth.errors import PersistenceError
from auth.store import Credential, CredentialStore, load_config


class TestCredential:
    def test_empty_refresh_token_is_absent(self) -> None:
        assert Credential(refresh_token="").has_refresh_token is False
        assert Credential(refresh_token=None).has_refresh_token is False
        assert Credential(refresh_token="RT").has_refresh_token is True


class TestLoadConfig:
    def test_missing_file_gives_empty_credential(self, tmp_path) -> None:
        assert load_config(tmp_path / "nope.json") == Credential()

    def test_reads_all_fields(self, tmp_path) -> None:
        path = tmp_path / "default.json"
        path.write_text(json.dumps({
            "client_id": "id",
            "client_secret": "secret",
            "redirect_uri": "http://localhost:8000/callback",
            "refresh_token": "RT1",
        }))
        cred = load_config(path)
        assert cred.client_id == "id"
        assert cred.client_secret == "secret"
        assert cred.redirect_uri == "http://localhost:8000/callback"
        assert cred.refresh_token == "RT1"

    def test_empty_refresh_token_normalised(self, tmp_path) -> None:
        path = tmp_path / "default.json"
        path.write_text(json.dumps({"client_id": "id", "refresh_token": ""}))
        assert load_config(path).refresh_token is None

    def test_unknown_keys_ignored(self, tmp_path) -> None:
        path = tmp_path / "default.json"
        path.write_text(json.dumps({"client_id": "id", "extra": 1}))
        assert load_config(path).client_id == "id"

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "default.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError):
            load_config(path)

    def test_non_object_json(self, tmp_path) -> None:
        path = tmp_path / "default.json"
        path.write_text("[1, 2]")
        with pytest.raises(PersistenceError):
            load_config(path)


class TestCredentialStore:
    def test_save_then_load(self, tmp_path) -> None:
        store = CredentialStore(tmp_path / "config")
        cred = Credential("id", "secret", "http://localhost:8000/callback", "RT1")

        store.save("work", cred)

        assert store.load("work") == cred
        assert store.path_for("work") == tmp_path / "config" / "work.json"

    def test_profiles_are_separate(self, tmp_path) -> None:
        store = CredentialStore(tmp_path)
        store.save("work", Credential(client_id="work-id"))
        store.save("home", Credential(client_id="home-id"))
        assert store.load("work").client_id == "work-id"
        assert store.load("home").client_id == "home-id"

    def test_saved_file_is_private(self, tmp_path) -> None:
        store = CredentialStore(tmp_path)
        store.save("default", Credential(client_secret="secret"))
        mode = os.stat(store.path_for("default")).st_mode & 0o777
        assert mode == 0o600

    def test_unwritable_location_raises(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = CredentialStore(blocker / "config")
        with pytest.raises(PersistenceError) as exc_info:
            store.save("default", Credential())
        assert isinstance(exc_info.value.original_error, OSError)
