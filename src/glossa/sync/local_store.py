"""Local SQLite cache for downloaded glosses and situations.

Downloaded glosses are merged by their natural key (language, content), not
by remote ID: a record whose key is already cached overwrites that row in
place and keeps its ``local_id``. Relations are kept as remote ID lists.
Situations are keyed by identifier, with challenge glosses as remote IDs.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from glossa.graph.models import (
    RELATION_ID_FIELDS,
    Gloss,
    LanguageCode,
    LocalizedString,
    Note,
    RelationKind,
    SituationDTO,
    SituationSummary,
    gen_id,
    utcnow,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Local Models
# =============================================================================


class LocalGloss(BaseModel):
    """Cached gloss. Relations hold remote IDs."""

    local_id: str = Field(default_factory=gen_id)
    remote_id: str
    language: LanguageCode
    content: str
    is_paraphrased: bool = False
    transcriptions: list[str] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)

    contains_ids: list[str] = Field(default_factory=list)
    near_synonym_ids: list[str] = Field(default_factory=list)
    near_homophone_ids: list[str] = Field(default_factory=list)
    translation_ids: list[str] = Field(default_factory=list)
    clarifies_usage_ids: list[str] = Field(default_factory=list)
    to_be_differentiated_from_ids: list[str] = Field(default_factory=list)

    updated_at: datetime = Field(default_factory=utcnow)
    last_synced_at: datetime = Field(default_factory=utcnow)

    def relation_ids(self, kind: RelationKind) -> list[str]:
        return getattr(self, RELATION_ID_FIELDS[kind])


class LocalChallengeOfExpression(BaseModel):
    """Expression challenge as cached. Prompts may already be language-filtered."""

    identifier: str
    prompts: list[LocalizedString] = Field(default_factory=list)
    gloss_ids: list[str] = Field(default_factory=list)


class LocalChallengeOfUnderstandingText(BaseModel):
    text: str
    language: LanguageCode
    gloss_ids: list[str] = Field(default_factory=list)


class LocalSituation(BaseModel):
    """Cached situation. A summary-only download has empty challenge lists."""

    identifier: str
    descriptions: list[LocalizedString] = Field(default_factory=list)
    image_link: Optional[str] = None
    target_language: LanguageCode
    challenges_of_expression: list[LocalChallengeOfExpression] = Field(default_factory=list)
    challenges_of_understanding_text: list[LocalChallengeOfUnderstandingText] = Field(
        default_factory=list
    )
    updated_at: datetime = Field(default_factory=utcnow)
    last_synced_at: datetime = Field(default_factory=utcnow)

    def gloss_ids(self) -> list[str]:
        ids: list[str] = []
        for challenge in self.challenges_of_expression:
            ids.extend(challenge.gloss_ids)
        for challenge in self.challenges_of_understanding_text:
            ids.extend(challenge.gloss_ids)
        return list(dict.fromkeys(ids))


# =============================================================================
# Schema Definition
# =============================================================================

SCHEMA = """
CREATE TABLE IF NOT EXISTS local_glosses (
    local_id TEXT PRIMARY KEY,
    remote_id TEXT NOT NULL,
    language TEXT NOT NULL,
    content TEXT NOT NULL,
    is_paraphrased INTEGER NOT NULL DEFAULT 0,
    transcriptions JSON,
    notes JSON,
    relations JSON,
    updated_at DATETIME,
    last_synced_at DATETIME,
    UNIQUE (language, content)
);

CREATE TABLE IF NOT EXISTS local_situations (
    identifier TEXT PRIMARY KEY,
    descriptions JSON,
    image_link TEXT,
    target_language TEXT NOT NULL,
    challenges_of_expression JSON,
    challenges_of_understanding_text JSON,
    updated_at DATETIME,
    last_synced_at DATETIME
);

CREATE INDEX IF NOT EXISTS idx_local_glosses_remote ON local_glosses(remote_id);
CREATE INDEX IF NOT EXISTS idx_local_glosses_language ON local_glosses(language);
CREATE INDEX IF NOT EXISTS idx_local_situations_language ON local_situations(target_language);
"""


def _to_local(record: Gloss, local_id: Optional[str] = None) -> LocalGloss:
    now = utcnow()
    return LocalGloss(
        local_id=local_id or gen_id(),
        remote_id=record.id,
        language=record.language,
        content=record.content,
        is_paraphrased=record.is_paraphrased,
        transcriptions=list(record.transcriptions),
        notes=list(record.notes),
        updated_at=now,
        last_synced_at=now,
        **{name: record.relation_ids(kind) for kind, name in RELATION_ID_FIELDS.items()},
    )


# =============================================================================
# LocalStore Class
# =============================================================================


class LocalStore:
    """Client-side cache of downloaded content.

    Holds one connection for its lifetime; construct it at startup and
    ``close()`` it at shutdown, or use it as a context manager.

    Example:
        with LocalStore("./data/glossa-local.db") as local:
            local.upsert_many(result.records)
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """Open (and if needed create) the cache database.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            self.db_path, check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        with self.transaction() as conn:
            conn.executescript(SCHEMA)

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection. Further use raises ``RuntimeError``."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def is_closed(self) -> bool:
        return self._conn is None

    @contextmanager
    def transaction(self):
        """Yield the connection; commits on success, rolls back on error."""
        if self._conn is None:
            raise RuntimeError("LocalStore is closed")
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    # =========================================================================
    # Gloss Operations
    # =========================================================================

    def upsert(self, record: Gloss) -> LocalGloss:
        """Insert a gloss or overwrite the cached one with the same natural key."""
        with self.transaction() as conn:
            return self._upsert(conn, record)

    def upsert_many(self, records: Iterable[Gloss]) -> list[LocalGloss]:
        """Upsert a batch in one transaction. Later records win on a shared key.

        Nothing is written if any record fails.
        """
        with self.transaction() as conn:
            stored = [self._upsert(conn, record) for record in records]
        logger.debug(f"Upserted {len(stored)} glosses into local store")
        return stored

    def _upsert(self, conn: sqlite3.Connection, record: Gloss) -> LocalGloss:
        row = conn.execute(
            "SELECT local_id FROM local_glosses WHERE language = ? AND content = ?",
            (record.language.value, record.content),
        ).fetchone()
        local = _to_local(record, local_id=row["local_id"] if row else None)
        params = (
            local.remote_id,
            local.language.value,
            local.content,
            int(local.is_paraphrased),
            json.dumps(local.transcriptions),
            json.dumps([n.model_dump() for n in local.notes]),
            json.dumps({name: getattr(local, name) for name in RELATION_ID_FIELDS.values()}),
            local.updated_at.isoformat(),
            local.last_synced_at.isoformat(),
            local.local_id,
        )
        if row:
            conn.execute(
                """
                UPDATE local_glosses SET
                    remote_id = ?, language = ?, content = ?, is_paraphrased = ?,
                    transcriptions = ?, notes = ?, relations = ?,
                    updated_at = ?, last_synced_at = ?
                WHERE local_id = ?
                """,
                params,
            )
        else:
            conn.execute(
                """
                INSERT INTO local_glosses (
                    remote_id, language, content, is_paraphrased,
                    transcriptions, notes, relations,
                    updated_at, last_synced_at, local_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                params,
            )
        return local

    def find_by_language_content(
        self, language: LanguageCode, content: str
    ) -> Optional[LocalGloss]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM local_glosses WHERE language = ? AND content = ?",
                (LanguageCode(language).value, content),
            ).fetchone()
        return self._row_to_gloss(row) if row else None

    def get_gloss(self, local_id: str) -> Optional[LocalGloss]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM local_glosses WHERE local_id = ?", (local_id,)
            ).fetchone()
        return self._row_to_gloss(row) if row else None

    def get_by_remote_id(self, remote_id: str) -> Optional[LocalGloss]:
        """Most recently synced gloss carrying this remote ID."""
        with self.transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM local_glosses WHERE remote_id = ?
                ORDER BY last_synced_at DESC LIMIT 1
                """,
                (remote_id,),
            ).fetchone()
        return self._row_to_gloss(row) if row else None

    def get_by_remote_ids(self, remote_ids: Iterable[str]) -> list[LocalGloss]:
        """Cached glosses for the given remote IDs, in input order, missing skipped."""
        found = []
        for remote_id in dict.fromkeys(remote_ids):
            local = self.get_by_remote_id(remote_id)
            if local:
                found.append(local)
        return found

    def get_glosses_by_language(self, language: LanguageCode) -> list[LocalGloss]:
        with self.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM local_glosses WHERE language = ? ORDER BY content",
                (LanguageCode(language).value,),
            ).fetchall()
        return [self._row_to_gloss(row) for row in rows]

    def count_glosses(self) -> int:
        with self.transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM local_glosses").fetchone()[0]

    def delete_gloss(self, local_id: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM local_glosses WHERE local_id = ?", (local_id,))
            return cursor.rowcount > 0

    def clear_glosses(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM local_glosses")

    def _row_to_gloss(self, row: sqlite3.Row) -> LocalGloss:
        relations = json.loads(row["relations"] or "{}")
        return LocalGloss(
            local_id=row["local_id"],
            remote_id=row["remote_id"],
            language=LanguageCode(row["language"]),
            content=row["content"],
            is_paraphrased=bool(row["is_paraphrased"]),
            transcriptions=json.loads(row["transcriptions"] or "[]"),
            notes=[Note.model_validate(n) for n in json.loads(row["notes"] or "[]")],
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_synced_at=datetime.fromisoformat(row["last_synced_at"]),
            **{name: relations.get(name, []) for name in RELATION_ID_FIELDS.values()},
        )

    # =========================================================================
    # Situation Operations
    # =========================================================================

    def upsert_situation(self, situation: SituationDTO) -> LocalSituation:
        """Insert or replace a situation by identifier, challenges included."""
        now = utcnow()
        local = LocalSituation(
            identifier=situation.identifier,
            descriptions=situation.descriptions,
            image_link=situation.image_link,
            target_language=situation.target_language,
            challenges_of_expression=[
                LocalChallengeOfExpression(
                    identifier=c.identifier,
                    prompts=c.prompts,
                    gloss_ids=[g.id for g in c.glosses],
                )
                for c in situation.challenges_of_expression
            ],
            challenges_of_understanding_text=[
                LocalChallengeOfUnderstandingText(
                    text=c.text,
                    language=c.language,
                    gloss_ids=[g.id for g in c.glosses],
                )
                for c in situation.challenges_of_understanding_text
            ],
            updated_at=now,
            last_synced_at=now,
        )
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO local_situations (
                    identifier, descriptions, image_link, target_language,
                    challenges_of_expression, challenges_of_understanding_text,
                    updated_at, last_synced_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    local.identifier,
                    json.dumps([d.model_dump(mode="json") for d in local.descriptions]),
                    local.image_link,
                    local.target_language.value,
                    json.dumps([c.model_dump(mode="json") for c in local.challenges_of_expression]),
                    json.dumps(
                        [c.model_dump(mode="json") for c in local.challenges_of_understanding_text]
                    ),
                    local.updated_at.isoformat(),
                    local.last_synced_at.isoformat(),
                ),
            )
        return local

    def upsert_situation_summary(self, summary: SituationSummary) -> LocalSituation:
        """Update situation metadata, keeping any challenges already cached."""
        now = utcnow().isoformat()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO local_situations (
                    identifier, descriptions, image_link, target_language,
                    challenges_of_expression, challenges_of_understanding_text,
                    updated_at, last_synced_at
                ) VALUES (?, ?, ?, ?, '[]', '[]', ?, ?)
                ON CONFLICT(identifier) DO UPDATE SET
                    descriptions = excluded.descriptions,
                    image_link = excluded.image_link,
                    target_language = excluded.target_language,
                    updated_at = excluded.updated_at,
                    last_synced_at = excluded.last_synced_at
                """,
                (
                    summary.identifier,
                    json.dumps([d.model_dump(mode="json") for d in summary.descriptions]),
                    summary.image_link,
                    summary.target_language.value,
                    now,
                    now,
                ),
            )
        return self.get_situation(summary.identifier)

    def get_situation(self, identifier: str) -> Optional[LocalSituation]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM local_situations WHERE identifier = ?", (identifier,)
            ).fetchone()
        return self._row_to_situation(row) if row else None

    def list_situations(
        self, target_language: Optional[LanguageCode] = None
    ) -> list[LocalSituation]:
        query = "SELECT * FROM local_situations"
        params: list[str] = []
        if target_language:
            query += " WHERE target_language = ?"
            params.append(LanguageCode(target_language).value)
        query += " ORDER BY identifier"
        with self.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_situation(row) for row in rows]

    def situation_exists(self, identifier: str) -> bool:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM local_situations WHERE identifier = ?", (identifier,)
            ).fetchone()
            return row is not None

    def delete_situation(self, identifier: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM local_situations WHERE identifier = ?", (identifier,)
            )
            return cursor.rowcount > 0

    def clear_situations(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM local_situations")

    def _row_to_situation(self, row: sqlite3.Row) -> LocalSituation:
        return LocalSituation(
            identifier=row["identifier"],
            descriptions=json.loads(row["descriptions"] or "[]"),
            image_link=row["image_link"],
            target_language=LanguageCode(row["target_language"]),
            challenges_of_expression=json.loads(row["challenges_of_expression"] or "[]"),
            challenges_of_understanding_text=json.loads(
                row["challenges_of_understanding_text"] or "[]"
            ),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_synced_at=datetime.fromisoformat(row["last_synced_at"]),
        )
