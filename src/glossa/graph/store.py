"""SQLite store for the Glossa gloss graph.

Provides persistent storage for glosses, their relation edge sets and
situations. ``find_by_ids`` is the record-source primitive the resolver
loads waves through.
"""

import json
import logging
import sqlite3
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from glossa.errors import ConflictError, DanglingReferenceError

from .models import (
    ChallengeOfExpression,
    ChallengeOfUnderstandingText,
    Gloss,
    GlossRef,
    LanguageCode,
    LocalizedString,
    Note,
    RelationKind,
    Situation,
)

logger = logging.getLogger(__name__)

# Keeps IN (...) lists under SQLite's host parameter limit
_CHUNK_SIZE = 500


# =============================================================================
# Schema Definition
# =============================================================================

SCHEMA = """
-- Glosses table
CREATE TABLE IF NOT EXISTS glosses (
    id TEXT PRIMARY KEY,
    language TEXT NOT NULL,
    content TEXT NOT NULL,
    is_paraphrased INTEGER NOT NULL DEFAULT 0,
    transcriptions JSON,
    notes JSON,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (language, content)
);

-- Relation edge sets, one row per (source, kind, target)
CREATE TABLE IF NOT EXISTS gloss_relations (
    from_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    to_id TEXT NOT NULL,
    PRIMARY KEY (from_id, kind, to_id)
);

-- Situations table
CREATE TABLE IF NOT EXISTS situations (
    identifier TEXT PRIMARY KEY,
    descriptions JSON NOT NULL,
    image_link TEXT,
    target_language TEXT NOT NULL,
    challenges_of_expression JSON,
    challenges_of_understanding_text JSON,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Glosses referenced by a situation's challenges
CREATE TABLE IF NOT EXISTS situation_glosses (
    situation_id TEXT NOT NULL,
    gloss_id TEXT NOT NULL,
    PRIMARY KEY (situation_id, gloss_id)
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_glosses_language ON glosses(language);
CREATE INDEX IF NOT EXISTS idx_glosses_updated ON glosses(updated_at);
CREATE INDEX IF NOT EXISTS idx_relations_to ON gloss_relations(to_id);
CREATE INDEX IF NOT EXISTS idx_situations_language ON situations(target_language);
CREATE INDEX IF NOT EXISTS idx_situation_glosses_gloss ON situation_glosses(gloss_id);
"""


# =============================================================================
# JSON Serialization Helpers
# =============================================================================


def _deserialize_json(value: Optional[str]) -> Optional[dict | list]:
    """Deserialize a JSON string from SQLite."""
    if value is None:
        return None
    return json.loads(value)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a datetime string from SQLite."""
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _chunks(ids: list[str]) -> Iterable[list[str]]:
    for start in range(0, len(ids), _CHUNK_SIZE):
        yield ids[start:start + _CHUNK_SIZE]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _relation_ref(rel: sqlite3.Row) -> GlossRef:
    """Build the target reference of a relation row joined with its target gloss.

    Raises:
        DanglingReferenceError: If the target gloss no longer exists.
    """
    if rel["to_language"] is None:
        raise DanglingReferenceError(rel["from_id"], rel["to_id"], rel["kind"])
    return GlossRef(id=rel["to_id"], language=rel["to_language"], content=rel["to_content"])


# =============================================================================
# GlossStore Class
# =============================================================================


class GlossStore:
    """SQLite-based storage for the gloss graph."""

    def __init__(self, db_path: str | Path = ":memory:"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = str(db_path)
        self._is_memory = self.db_path == ":memory:"
        self._persistent_conn: Optional[sqlite3.Connection] = None

        # For in-memory DBs, create persistent connection immediately
        if self._is_memory:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._persistent_conn.row_factory = sqlite3.Row

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database with schema."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def connection(self):
        """Get a database connection; commits on success, rolls back on error.

        For in-memory databases, returns the persistent connection.
        For file-based databases, creates a new connection each time.
        """
        if self._is_memory:
            conn = self._persistent_conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        else:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    # =========================================================================
    # Gloss Operations
    # =========================================================================

    def create_gloss(self, gloss: Gloss) -> Gloss:
        """Create a gloss together with its relation edge sets.

        Raises:
            ConflictError: If a gloss with the same (language, content) exists.
        """
        try:
            with self.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO glosses (
                        id, language, content, is_paraphrased,
                        transcriptions, notes, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        gloss.id,
                        gloss.language.value,
                        gloss.content,
                        int(gloss.is_paraphrased),
                        json.dumps(gloss.transcriptions),
                        json.dumps([n.model_dump() for n in gloss.notes]),
                        gloss.created_at.isoformat(),
                        gloss.updated_at.isoformat(),
                    ),
                )
                self._write_relations(conn, gloss, list(RelationKind))
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Gloss with language {gloss.language.value} and content "
                f"{gloss.content!r} already exists"
            ) from e
        return gloss

    def update_gloss(
        self, gloss: Gloss, kinds: Optional[Iterable[RelationKind]] = None
    ) -> Gloss:
        """Update scalar fields and replace the given relation edge sets.

        Args:
            gloss: The gloss with new values; its ID is kept.
            kinds: Relation kinds to replace. None replaces all six.

        Raises:
            ConflictError: If the new (language, content) belongs to another gloss.
        """
        kinds = list(RelationKind) if kinds is None else list(kinds)
        try:
            with self.connection() as conn:
                conn.execute(
                    """
                    UPDATE glosses SET
                        language = ?,
                        content = ?,
                        is_paraphrased = ?,
                        transcriptions = ?,
                        notes = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        gloss.language.value,
                        gloss.content,
                        int(gloss.is_paraphrased),
                        json.dumps(gloss.transcriptions),
                        json.dumps([n.model_dump() for n in gloss.notes]),
                        gloss.updated_at.isoformat(),
                        gloss.id,
                    ),
                )
                self._write_relations(conn, gloss, kinds)
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Gloss with language {gloss.language.value} and content "
                f"{gloss.content!r} already exists"
            ) from e
        return gloss

    def _write_relations(
        self, conn: sqlite3.Connection, gloss: Gloss, kinds: list[RelationKind]
    ) -> None:
        """Replace the edge sets of the given kinds."""
        for kind in kinds:
            conn.execute(
                "DELETE FROM gloss_relations WHERE from_id = ? AND kind = ?",
                (gloss.id, kind.value),
            )
            conn.executemany(
                "INSERT OR IGNORE INTO gloss_relations (from_id, kind, to_id) VALUES (?, ?, ?)",
                [(gloss.id, kind.value, target_id) for target_id in gloss.relation_ids(kind)],
            )

    def get_gloss(self, gloss_id: str) -> Optional[Gloss]:
        """Get a gloss by ID."""
        found = self.find_by_ids([gloss_id])
        return found[0] if found else None

    def find_by_ids(self, ids: Iterable[str]) -> list[Gloss]:
        """Batch fetch glosses with their relation references.

        Unknown IDs are skipped. Relation targets are joined to carry their
        language and content; a target missing from the store is dropped
        and logged as a dangling reference.
        """
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []

        rows: list[sqlite3.Row] = []
        relation_rows: list[sqlite3.Row] = []
        with self.connection() as conn:
            for chunk in _chunks(wanted):
                marks = _placeholders(len(chunk))
                rows.extend(
                    conn.execute(
                        f"SELECT * FROM glosses WHERE id IN ({marks})", chunk
                    ).fetchall()
                )
                relation_rows.extend(
                    conn.execute(
                        f"""
                        SELECT r.from_id, r.kind, r.to_id,
                               t.language AS to_language, t.content AS to_content
                        FROM gloss_relations r
                        LEFT JOIN glosses t ON t.id = r.to_id
                        WHERE r.from_id IN ({marks})
                        ORDER BY r.rowid
                        """,
                        chunk,
                    ).fetchall()
                )

        relations: dict[str, dict[str, list[GlossRef]]] = defaultdict(lambda: defaultdict(list))
        for rel in relation_rows:
            try:
                relations[rel["from_id"]][rel["kind"]].append(_relation_ref(rel))
            except DanglingReferenceError as e:
                logger.warning(e.message)

        by_id = {row["id"]: self._row_to_gloss(row, relations.get(row["id"], {})) for row in rows}
        return [by_id[gloss_id] for gloss_id in wanted if gloss_id in by_id]

    def find_by_natural_key(self, language: LanguageCode, content: str) -> Optional[Gloss]:
        """Get the gloss with the given (language, content), if any."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT id FROM glosses WHERE language = ? AND content = ?",
                (LanguageCode(language).value, content),
            ).fetchone()
        if row is None:
            return None
        return self.get_gloss(row["id"])

    def list_gloss_ids(
        self, language: Optional[LanguageCode] = None, content: Optional[str] = None
    ) -> list[str]:
        """Gloss IDs matching the filters, most recently updated first."""
        query = "SELECT id FROM glosses WHERE 1 = 1"
        params: list[str] = []
        if language:
            query += " AND language = ?"
            params.append(LanguageCode(language).value)
        if content:
            query += " AND content = ?"
            params.append(content)
        query += " ORDER BY updated_at DESC, rowid DESC"
        with self.connection() as conn:
            return [row["id"] for row in conn.execute(query, params).fetchall()]

    def get_refs(self, ids: Iterable[str]) -> dict[str, GlossRef]:
        """Minimal references for the given IDs that exist."""
        wanted = list(dict.fromkeys(ids))
        refs: dict[str, GlossRef] = {}
        with self.connection() as conn:
            for chunk in _chunks(wanted):
                rows = conn.execute(
                    f"SELECT id, language, content FROM glosses WHERE id IN ({_placeholders(len(chunk))})",
                    chunk,
                ).fetchall()
                for row in rows:
                    refs[row["id"]] = GlossRef(
                        id=row["id"], language=row["language"], content=row["content"]
                    )
        return refs

    def gloss_exists(self, gloss_id: str) -> bool:
        with self.connection() as conn:
            row = conn.execute("SELECT 1 FROM glosses WHERE id = ?", (gloss_id,)).fetchone()
            return row is not None

    def is_gloss_referenced(self, gloss_id: str) -> bool:
        """Whether another gloss or any situation references this gloss."""
        with self.connection() as conn:
            return self._is_referenced(conn, gloss_id)

    def _is_referenced(self, conn: sqlite3.Connection, gloss_id: str) -> bool:
        by_gloss = conn.execute(
            "SELECT 1 FROM gloss_relations WHERE to_id = ? AND from_id != ? LIMIT 1",
            (gloss_id, gloss_id),
        ).fetchone()
        by_situation = conn.execute(
            "SELECT 1 FROM situation_glosses WHERE gloss_id = ? LIMIT 1",
            (gloss_id,),
        ).fetchone()
        return by_gloss is not None or by_situation is not None

    def delete_gloss(self, gloss_id: str) -> bool:
        """Delete an unreferenced gloss and its outgoing edges.

        Returns:
            True if a gloss was deleted, False if it did not exist.

        Raises:
            ConflictError: If another gloss or a situation references it.
        """
        with self.connection() as conn:
            # Write lock before the check; the check and the delete are one transaction
            conn.execute("BEGIN IMMEDIATE")
            if self._is_referenced(conn, gloss_id):
                raise ConflictError(f"Gloss {gloss_id} is still referenced and cannot be deleted")
            conn.execute("DELETE FROM gloss_relations WHERE from_id = ?", (gloss_id,))
            cursor = conn.execute("DELETE FROM glosses WHERE id = ?", (gloss_id,))
            return cursor.rowcount > 0

    def _row_to_gloss(self, row: sqlite3.Row, relations: dict[str, list[GlossRef]]) -> Gloss:
        """Convert a database row plus its joined relations to a Gloss model."""
        notes_data = _deserialize_json(row["notes"]) or []
        return Gloss(
            id=row["id"],
            language=LanguageCode(row["language"]),
            content=row["content"],
            is_paraphrased=bool(row["is_paraphrased"]),
            transcriptions=_deserialize_json(row["transcriptions"]) or [],
            notes=[Note.model_validate(n) for n in notes_data],
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
            **{kind.value: relations.get(kind.value, []) for kind in RelationKind},
        )

    # =========================================================================
    # Situation Operations
    # =========================================================================

    def create_situation(self, situation: Situation) -> Situation:
        """Create a new situation.

        Raises:
            ConflictError: If the identifier is already taken.
        """
        try:
            with self.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO situations (
                        identifier, descriptions, image_link, target_language,
                        challenges_of_expression, challenges_of_understanding_text,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        situation.identifier,
                        json.dumps([d.model_dump(mode="json") for d in situation.descriptions]),
                        situation.image_link,
                        situation.target_language.value,
                        json.dumps(
                            [c.model_dump(mode="json") for c in situation.challenges_of_expression]
                        ),
                        json.dumps(
                            [
                                c.model_dump(mode="json")
                                for c in situation.challenges_of_understanding_text
                            ]
                        ),
                        situation.created_at.isoformat(),
                        situation.updated_at.isoformat(),
                    ),
                )
                self._write_situation_glosses(conn, situation)
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Situation identifier {situation.identifier} already exists"
            ) from e
        return situation

    def update_situation(self, situation: Situation) -> Situation:
        """Update an existing situation, replacing its challenges."""
        with self.connection() as conn:
            conn.execute(
                """
                UPDATE situations SET
                    descriptions = ?,
                    image_link = ?,
                    target_language = ?,
                    challenges_of_expression = ?,
                    challenges_of_understanding_text = ?,
                    updated_at = ?
                WHERE identifier = ?
                """,
                (
                    json.dumps([d.model_dump(mode="json") for d in situation.descriptions]),
                    situation.image_link,
                    situation.target_language.value,
                    json.dumps(
                        [c.model_dump(mode="json") for c in situation.challenges_of_expression]
                    ),
                    json.dumps(
                        [c.model_dump(mode="json") for c in situation.challenges_of_understanding_text]
                    ),
                    situation.updated_at.isoformat(),
                    situation.identifier,
                ),
            )
            self._write_situation_glosses(conn, situation)
        return situation

    def _write_situation_glosses(self, conn: sqlite3.Connection, situation: Situation) -> None:
        conn.execute(
            "DELETE FROM situation_glosses WHERE situation_id = ?", (situation.identifier,)
        )
        conn.executemany(
            "INSERT INTO situation_glosses (situation_id, gloss_id) VALUES (?, ?)",
            [(situation.identifier, gloss_id) for gloss_id in situation.gloss_ids()],
        )

    def get_situation(self, identifier: str) -> Optional[Situation]:
        """Get a situation by identifier."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM situations WHERE identifier = ?", (identifier,)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_situation(row)

    def list_situations(
        self,
        identifier: Optional[str] = None,
        target_language: Optional[LanguageCode] = None,
    ) -> list[Situation]:
        """List situations, most recently updated first."""
        query = "SELECT * FROM situations WHERE 1 = 1"
        params: list[str] = []
        if identifier:
            query += " AND identifier = ?"
            params.append(identifier)
        if target_language:
            query += " AND target_language = ?"
            params.append(LanguageCode(target_language).value)
        query += " ORDER BY updated_at DESC, rowid DESC"
        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_situation(row) for row in rows]

    def delete_situation(self, identifier: str) -> bool:
        """Delete a situation. Referenced glosses are left untouched."""
        with self.connection() as conn:
            conn.execute("DELETE FROM situation_glosses WHERE situation_id = ?", (identifier,))
            cursor = conn.execute("DELETE FROM situations WHERE identifier = ?", (identifier,))
            return cursor.rowcount > 0

    def _row_to_situation(self, row: sqlite3.Row) -> Situation:
        """Convert a database row to a Situation model."""
        return Situation(
            identifier=row["identifier"],
            descriptions=[
                LocalizedString.model_validate(d)
                for d in _deserialize_json(row["descriptions"]) or []
            ],
            image_link=row["image_link"],
            target_language=LanguageCode(row["target_language"]),
            challenges_of_expression=[
                ChallengeOfExpression.model_validate(c)
                for c in _deserialize_json(row["challenges_of_expression"]) or []
            ],
            challenges_of_understanding_text=[
                ChallengeOfUnderstandingText.model_validate(c)
                for c in _deserialize_json(row["challenges_of_understanding_text"]) or []
            ],
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )
