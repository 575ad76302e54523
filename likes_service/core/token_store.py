from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence
from pathlib import Path
from pydantic import ValidationError
import json
import os
import sqlite3
import tempfile
import threading
from ..models import CredentialRecord
from ..exceptions import TokenStoreError
from ..utils.crypto import TokenCipher
from ..utils.logger import get_logger

logger = get_logger(__name__)

class TokenStore(ABC):
    """Persists the whole collection of credential records as one document."""

    def __init__(self, cipher: Optional[TokenCipher] = None):
        self.cipher = cipher

    @abstractmethod
    def load(self) -> List[CredentialRecord]:
        """Return every stored record, creating an empty document if none exists."""
        pass

    @abstractmethod
    def save(self, records: Sequence[CredentialRecord]) -> None:
        """Replace the stored document with ``records``."""
        pass

    def _encode(self, record: CredentialRecord) -> dict:
        document = record.to_document()
        if self.cipher:
            document["accessToken"] = self.cipher.encrypt(record.access_token)
            document["refreshToken"] = self.cipher.encrypt(record.refresh_token)
        return document

    def _decode(self, entries: Iterable) -> List[CredentialRecord]:
        records: List[CredentialRecord] = []
        seen = set()
        for position, entry in enumerate(entries):
            try:
                record = CredentialRecord.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping malformed credential record at position {position}: {e.error_count()} error(s)")
                continue

            if record.user_id in seen:
                logger.warning(f"Duplicate credential record for user ID {record.user_id}, keeping the first")
                continue
            seen.add(record.user_id)

            if self.cipher:
                record = record.model_copy(update={
                    "access_token": self.cipher.decrypt(record.access_token),
                    "refresh_token": self.cipher.decrypt(record.refresh_token),
                })
            records.append(record)
        return records


class JsonFileTokenStore(TokenStore):
    """Credential records as a JSON array in a single file."""

    def __init__(self, path: str, cipher: Optional[TokenCipher] = None):
        super().__init__(cipher)
        self.path = Path(path)

    def load(self) -> List[CredentialRecord]:
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"Token file {self.path} not found, creating an empty one")
            self.save([])
            return []
        except OSError as e:
            logger.error(f"Error loading tokens: {str(e)}")
            return []

        try:
            entries = json.loads(data)
        except json.JSONDecodeError as e:
            logger.error(f"Error loading tokens: {self.path} is not valid JSON ({str(e)})")
            return []

        if not isinstance(entries, list):
            logger.error(f"Error loading tokens: {self.path} does not hold a JSON array")
            return []

        return self._decode(entries)

    def save(self, records: Sequence[CredentialRecord]) -> None:
        payload = json.dumps([self._encode(record) for record in records], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write next to the target and rename over it so readers never see a partial document
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Error saving tokens: {str(e)}")
            raise TokenStoreError(f"Could not write {self.path}: {str(e)}") from e
        logger.debug(f"Saved {len(records)} credential record(s) to {self.path}")


class SqliteTokenStore(TokenStore):
    """Credential records in an SQLite table, one row per user."""

    def __init__(self, db_path: str, cipher: Optional[TokenCipher] = None):
        super().__init__(cipher)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS credentials (
                    user_id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    record TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            self.conn.commit()
            logger.info(f"Credential table ready in {self.db_path}")

    def load(self) -> List[CredentialRecord]:
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute('SELECT record FROM credentials ORDER BY position')
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error loading tokens: {str(e)}")
            return []

        entries = []
        for (raw,) in rows:
            try:
                entries.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.warning("Skipping credential row that is not valid JSON")
        return self._decode(entries)

    def save(self, records: Sequence[CredentialRecord]) -> None:
        rows = [
            (record.user_id, position, json.dumps(self._encode(record)))
            for position, record in enumerate(records)
        ]
        try:
            with self._lock:
                # The connection context manager commits or rolls back the whole replacement
                with self.conn:
                    self.conn.execute('DELETE FROM credentials')
                    self.conn.executemany(
                        'INSERT INTO credentials (user_id, position, record) VALUES (?, ?, ?)',
                        rows,
                    )
        except sqlite3.Error as e:
            logger.error(f"Error saving tokens: {str(e)}")
            raise TokenStoreError(f"Could not write {self.db_path}: {str(e)}") from e

    def close(self) -> None:
        self.conn.close()


def create_token_store(settings) -> TokenStore:
    """Build the configured token store backend."""
    cipher = TokenCipher(settings.ENCRYPTION_KEY) if settings.ENCRYPTION_KEY else None
    if settings.TOKEN_STORE_BACKEND == "sqlite":
        logger.info(f"Using SQLite token store at {settings.DATABASE_PATH}")
        return SqliteTokenStore(settings.DATABASE_PATH, cipher=cipher)
    logger.info(f"Using JSON token store at {settings.TOKEN_FILE}")
    return JsonFileTokenStore(settings.TOKEN_FILE, cipher=cipher)
