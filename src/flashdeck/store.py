from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .config import settings
from .id_factory import generate_card_id
from .logging import logger
from .srs import ReviewScore, SrsState, advance, initial_state


_CARD_COLUMNS = (
    "id, deck_name, front, back, ease, interval_days, next_review, created_at, updated_at"
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_iso(value: datetime) -> str:
    """Serialise a timestamp so that lexical order equals chronological order."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _from_iso(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class Card:
    id: str
    deck_name: str
    front: str
    back: str
    ease: float
    interval: int
    next_review: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def state(self) -> SrsState:
        return SrsState(ease=self.ease, interval=self.interval, next_review=self.next_review)

    def with_state(self, state: SrsState, *, updated_at: datetime) -> "Card":
        return replace(
            self,
            ease=state.ease,
            interval=state.interval,
            next_review=state.next_review,
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class NewCard:
    """Content of a card to be inserted; SRS fields are always seeded by the store."""

    deck_name: str
    front: str
    back: str


class CardSQLiteStore:
    """SQLite-backed persistence layer for flashcards.

    - 1 操作につき 1 コネクション（WAL モード）で、スレッド間で接続を共有しない
    - 日時は UTC の ISO-8601 文字列（マイクロ秒固定）で保存し、文字列比較で due 判定できる
    - SRS 項目（ease/interval/next_review）を書き換えるのは review_card のみ
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._ensure_dirs()
        self._init_db()
        logger.info("card_store_ready", db_path=db_path)

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        with conn:  # autocommit on pragma
            conn.execute("pragma journal_mode=WAL;")
            conn.execute("pragma foreign_keys=ON;")
        return conn

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        with self._conn() as conn:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS cards (
                        id TEXT PRIMARY KEY,
                        deck_name TEXT NOT NULL,
                        front TEXT NOT NULL,
                        back TEXT NOT NULL,
                        ease REAL NOT NULL DEFAULT 2.5,
                        interval_days INTEGER NOT NULL DEFAULT 0,
                        next_review TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_cards_deck_name ON cards(deck_name);"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_cards_next_review ON cards(next_review);"
                )

    @staticmethod
    def _row_to_card(row: sqlite3.Row) -> Card:
        return Card(
            id=row["id"],
            deck_name=row["deck_name"],
            front=row["front"],
            back=row["back"],
            ease=float(row["ease"]),
            interval=int(row["interval_days"]),
            next_review=_from_iso(row["next_review"]),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )

    @staticmethod
    def _insert(conn: sqlite3.Connection, card: Card) -> None:
        conn.execute(
            f"""
            INSERT INTO cards({_CARD_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                card.id,
                card.deck_name,
                card.front,
                card.back,
                card.ease,
                card.interval,
                _to_iso(card.next_review),
                _to_iso(card.created_at),
                _to_iso(card.updated_at),
            ),
        )

    @staticmethod
    def _seed(new_card: NewCard, now: datetime) -> Card:
        state = initial_state(now)
        return Card(
            id=generate_card_id(),
            deck_name=new_card.deck_name,
            front=new_card.front,
            back=new_card.back,
            ease=state.ease,
            interval=state.interval,
            next_review=state.next_review,
            created_at=now,
            updated_at=now,
        )

    # --- CRUD ---
    def create_card(
        self, deck_name: str, front: str, back: str, now: Optional[datetime] = None
    ) -> Card:
        """Insert a new card that is due immediately (ease=2.5, interval=0)."""

        card = self._seed(NewCard(deck_name=deck_name, front=front, back=back), now or _utcnow())
        with self._conn() as conn:
            with conn:
                self._insert(conn, card)
        return card

    def create_cards(
        self, rows: Iterable[NewCard], now: Optional[datetime] = None
    ) -> list[Card]:
        """Insert many cards in a single transaction (all or nothing)."""

        ts = now or _utcnow()
        cards = [self._seed(row, ts) for row in rows]
        if not cards:
            return []
        with self._conn() as conn:
            conn.execute("BEGIN;")
            try:
                for card in cards:
                    self._insert(conn, card)
            except Exception:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")
        return cards

    def get_card(self, card_id: str) -> Optional[Card]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_CARD_COLUMNS} FROM cards WHERE id = ?;", (card_id,)
            ).fetchone()
        return self._row_to_card(row) if row is not None else None

    def list_cards(
        self,
        deck_name: Optional[str] = None,
        due_before: Optional[datetime] = None,
    ) -> list[Card]:
        """Return cards newest first, optionally narrowed by deck and due time."""

        clauses: list[str] = []
        params: list[object] = []
        if deck_name is not None:
            clauses.append("deck_name = ?")
            params.append(deck_name)
        if due_before is not None:
            clauses.append("next_review <= ?")
            params.append(_to_iso(due_before))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_CARD_COLUMNS} FROM cards {where} ORDER BY created_at DESC, id ASC;",
                params,
            ).fetchall()
        return [self._row_to_card(row) for row in rows]

    def list_decks(self) -> list[str]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT DISTINCT deck_name FROM cards ORDER BY deck_name ASC;"
            ).fetchall()
        return [row["deck_name"] for row in rows]

    def summarize_decks(self, now: Optional[datetime] = None) -> list[tuple[str, int, int]]:
        """Return ``(deck_name, total, due_now)`` per deck, ordered by name."""

        ts = _to_iso(now or _utcnow())
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT deck_name,
                       COUNT(1) AS total,
                       SUM(CASE WHEN next_review <= ? THEN 1 ELSE 0 END) AS due
                FROM cards
                GROUP BY deck_name
                ORDER BY deck_name ASC;
                """,
                (ts,),
            ).fetchall()
        return [(row["deck_name"], int(row["total"]), int(row["due"] or 0)) for row in rows]

    def update_card(
        self,
        card_id: str,
        *,
        deck_name: Optional[str] = None,
        front: Optional[str] = None,
        back: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Card]:
        """Update card content. SRS fields are left untouched.

        None の項目は現状維持。カードが存在しなければ None を返す。
        """

        assignments: list[str] = []
        params: list[object] = []
        for column, value in (("deck_name", deck_name), ("front", front), ("back", back)):
            if value is not None:
                assignments.append(f"{column} = ?")
                params.append(value)
        assignments.append("updated_at = ?")
        params.append(_to_iso(now or _utcnow()))
        params.append(card_id)

        with self._conn() as conn:
            with conn:
                cur = conn.execute(
                    f"UPDATE cards SET {', '.join(assignments)} WHERE id = ?;", params
                )
                if cur.rowcount == 0:
                    return None
                row = conn.execute(
                    f"SELECT {_CARD_COLUMNS} FROM cards WHERE id = ?;", (card_id,)
                ).fetchone()
        return self._row_to_card(row)

    def delete_card(self, card_id: str) -> bool:
        """カードを削除する。成功時True、存在しない場合False。"""
        with self._conn() as conn:
            with conn:
                cur = conn.execute("DELETE FROM cards WHERE id = ?;", (card_id,))
                return cur.rowcount > 0

    # --- review ---
    def review_card(
        self, card_id: str, score: ReviewScore | int, now: Optional[datetime] = None
    ) -> Optional[Card]:
        """Apply a review to a card and persist the resulting schedule.

        読み出し→advance→書き込みを BEGIN IMMEDIATE の単一トランザクションで行い、
        同一カードへの同時レビューで更新が失われないようにする。
        スコアは DB に触れる前に検証する。
        """

        grade = ReviewScore.parse(score)
        ts = now or _utcnow()
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            row = conn.execute(
                f"SELECT {_CARD_COLUMNS} FROM cards WHERE id = ?;", (card_id,)
            ).fetchone()
            if row is None:
                conn.execute("ROLLBACK;")
                return None

            card = self._row_to_card(row)
            updated = card.with_state(advance(card.state, grade, now=ts), updated_at=ts)
            conn.execute(
                """
                UPDATE cards
                SET ease = ?, interval_days = ?, next_review = ?, updated_at = ?
                WHERE id = ?;
                """,
                (
                    updated.ease,
                    updated.interval,
                    _to_iso(updated.next_review),
                    _to_iso(updated.updated_at),
                    card_id,
                ),
            )
            conn.execute("COMMIT;")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            raise
        finally:
            conn.close()

        logger.info(
            "card_reviewed",
            card_id=card_id,
            score=int(grade),
            ease=updated.ease,
            interval=updated.interval,
            next_review=_to_iso(updated.next_review),
        )
        return updated


# module-level singleton store (wired to settings)
store = CardSQLiteStore(db_path=settings.flashdeck_db_path)
