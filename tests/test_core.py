import asyncio
import json
import os
import pytest
from cryptography.fernet import Fernet
from likes_service.core import JsonFileTokenStore, SqliteTokenStore, TokenManager, create_token_store
from likes_service.config import load_settings
from likes_service.exceptions import TokenStoreError
from likes_service.models import CredentialRecord, TokenBundle
from likes_service.utils.crypto import TokenCipher
from conftest import make_record

def test_record_expiry_boundary():
    """A record is expired exactly from createdAt + expiresIn seconds onwards."""
    record = make_record(created_at=1_000_000, expires_in=60)

    assert record.expires_at == 1_060_000
    assert not record.is_expired(now=1_059_999)
    assert record.is_expired(now=1_060_000)
    assert record.is_expired(now=1_060_001)

def test_record_serializes_with_camel_case_keys():
    record = make_record("7")
    document = record.to_document()

    assert set(document) == {
        "userId", "username", "name", "accessToken", "refreshToken", "expiresIn", "createdAt"
    }
    assert CredentialRecord.model_validate(document) == record

def test_with_tokens_keeps_identity_and_resets_clock():
    record = make_record("7", expired=True)
    updated = record.with_tokens(
        TokenBundle(access_token="new-access", refresh_token="new-refresh", expires_in=3600),
        now=5_000,
    )

    assert updated.user_id == "7"
    assert updated.username == record.username
    assert updated.access_token == "new-access"
    assert updated.refresh_token == "new-refresh"
    assert updated.expires_in == 3600
    assert updated.created_at == 5_000

def test_load_missing_document_creates_empty_one(json_store, token_file):
    """Loading without a document returns nothing and leaves a valid empty array."""
    assert not token_file.exists()

    assert json_store.load() == []
    assert json.loads(token_file.read_text()) == []

def test_save_load_round_trip(json_store):
    records = [make_record("1"), make_record("2", expired=True)]

    json_store.save(records)
    loaded = json_store.load()
    json_store.save(loaded)

    assert json_store.load() == records

def test_malformed_document_is_treated_as_empty(json_store, token_file):
    token_file.write_text("{not json")

    assert json_store.load() == []
    # The broken document is left for inspection
    assert token_file.read_text() == "{not json"

def test_invalid_entries_and_duplicates_are_skipped(json_store, token_file):
    first = make_record("1").to_document()
    duplicate = make_record("1", access_token="other").to_document()
    token_file.write_text(json.dumps([first, {"userId": "2"}, duplicate, make_record("3").to_document()]))

    loaded = json_store.load()

    assert [record.user_id for record in loaded] == ["1", "3"]
    assert loaded[0].access_token == "access-1"

def test_encrypted_store_hides_tokens_at_rest(token_file):
    cipher = TokenCipher(Fernet.generate_key().decode())
    store = JsonFileTokenStore(str(token_file), cipher=cipher)
    record = make_record("1")

    store.save([record])

    raw = token_file.read_text()
    assert "access-1" not in raw
    assert "refresh-1" not in raw
    assert store.load() == [record]

def test_encrypted_store_reads_plaintext_documents(token_file):
    JsonFileTokenStore(str(token_file)).save([make_record("1")])
    store = JsonFileTokenStore(str(token_file), cipher=TokenCipher(Fernet.generate_key().decode()))

    assert store.load()[0].access_token == "access-1"

def test_sqlite_store_round_trip_keeps_order(tmp_path):
    store = SqliteTokenStore(str(tmp_path / "data" / "tokens.db"))
    records = [make_record("3"), make_record("1"), make_record("2")]

    assert store.load() == []
    store.save(records)
    assert store.load() == records

    store.save(records[:1])
    assert store.load() == records[:1]
    store.close()

def test_create_token_store_selects_backend(tmp_path):
    json_settings = load_settings(TOKEN_FILE=str(tmp_path / "t.json"))
    sqlite_settings = load_settings(TOKEN_STORE_BACKEND="sqlite", DATABASE_PATH=str(tmp_path / "t.db"))

    assert isinstance(create_token_store(json_settings), JsonFileTokenStore)
    sqlite_store = create_token_store(sqlite_settings)
    assert isinstance(sqlite_store, SqliteTokenStore)
    sqlite_store.close()

@pytest.mark.asyncio
async def test_register_inserts_new_user(token_manager, json_store):
    await token_manager.register(make_record("1"))
    await token_manager.register(make_record("2"))

    assert [record.user_id for record in json_store.load()] == ["1", "2"]

@pytest.mark.asyncio
async def test_register_same_user_twice_keeps_one_record(token_manager, json_store):
    """A returning user replaces their tokens instead of getting a second record."""
    await token_manager.register(make_record("1"))
    await token_manager.register(make_record("1", access_token="second-login", username="renamed"))

    records = json_store.load()
    assert len(records) == 1
    assert records[0].access_token == "second-login"
    assert records[0].username == "renamed"

@pytest.mark.asyncio
async def test_valid_token_is_returned_without_refresh(token_manager, json_store, fake_oauth):
    record = make_record("1")
    json_store.save([record])

    assert await token_manager.get_valid_access_token(record) == "access-1"
    assert fake_oauth.refresh_calls == []

@pytest.mark.asyncio
async def test_expired_token_is_refreshed_and_persisted(token_manager, json_store, fake_oauth):
    record = make_record("1", expired=True)
    json_store.save([record, make_record("2")])
    fake_oauth.refresh_results["refresh-1"] = TokenBundle(
        access_token="fresh-access", refresh_token="fresh-refresh", expires_in=7200
    )

    assert await token_manager.get_valid_access_token(record) == "fresh-access"

    stored = {r.user_id: r for r in json_store.load()}
    assert stored["1"].access_token == "fresh-access"
    assert stored["1"].refresh_token == "fresh-refresh"
    assert not stored["1"].is_expired()
    assert stored["2"].access_token == "access-2"

@pytest.mark.asyncio
async def test_failed_refresh_leaves_record_unchanged(token_manager, json_store, fake_oauth):
    record = make_record("1", expired=True)
    json_store.save([record])

    assert await token_manager.get_valid_access_token(record) is None
    assert fake_oauth.refresh_calls == ["refresh-1"]
    assert json_store.load() == [record]

@pytest.mark.asyncio
async def test_concurrent_writes_do_not_lose_updates(token_manager, json_store, fake_oauth):
    """A login and a refresh landing together both end up in the document."""
    expired = make_record("1", expired=True)
    json_store.save([expired])
    fake_oauth.refresh_results["refresh-1"] = TokenBundle(
        access_token="fresh-access", refresh_token="fresh-refresh", expires_in=7200
    )

    await asyncio.gather(
        token_manager.get_valid_access_token(expired),
        token_manager.register(make_record("2")),
    )

    stored = {r.user_id: r for r in json_store.load()}
    assert set(stored) == {"1", "2"}
    assert stored["1"].access_token == "fresh-access"

@pytest.mark.asyncio
async def test_get_record(token_manager, json_store):
    json_store.save([make_record("1"), make_record("2")])

    assert (await token_manager.get_record("2")).user_id == "2"
    assert await token_manager.get_record("3") is None

def test_failed_save_keeps_document_and_leaves_no_temp_file(json_store, tmp_path, monkeypatch):
    record = make_record("1")
    json_store.save([record])

    def read_only(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(os, "replace", read_only)

    with pytest.raises(TokenStoreError) as exc_info:
        json_store.save([record, make_record("2")])

    assert "read-only file system" in str(exc_info.value)
    assert [path.name for path in tmp_path.iterdir()] == ["tokens.json"]
    monkeypatch.undo()
    assert json_store.load() == [record]

@pytest.mark.asyncio
async def test_concurrent_refreshes_send_the_refresh_token_once(token_manager, json_store, fake_oauth):
    """Two callers hitting the same expired user share one refresh."""
    expired = make_record("1", expired=True)
    json_store.save([expired])
    fake_oauth.refresh_results["refresh-1"] = TokenBundle(
        access_token="fresh", refresh_token="fresh-refresh", expires_in=7200
    )

    results = await asyncio.gather(
        token_manager.get_valid_access_token(expired),
        token_manager.get_valid_access_token(expired),
    )

    assert results == ["fresh", "fresh"]
    assert fake_oauth.refresh_calls == ["refresh-1"]
    assert json_store.load()[0].refresh_token == "fresh-refresh"

@pytest.mark.asyncio
async def test_stale_expired_record_uses_the_stored_refresh(token_manager, json_store, fake_oauth):
    stale = make_record("1", expired=True)
    json_store.save([make_record("1", access_token="already-fresh")])

    assert await token_manager.get_valid_access_token(stale) == "already-fresh"
    assert fake_oauth.refresh_calls == []
