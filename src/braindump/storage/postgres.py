"""Postgres storage for braindumps and their tasks."""

import threading
from typing import Any, Sequence

import psycopg2
import psycopg2.extras

from braindump.errors import PersistenceError
from braindump.models.braindump import COMMITTED_ACTIONS, HistoricalTask, ScorableTask, TaskRow
from braindump.utils.logging import get_logger

logger = get_logger(__name__)


class PostgresStorage:
    """Storage layer for braindumps.

    One connection is shared by every worker thread; each public method holds
    the lock for its whole transaction so commits and rollbacks never
    interleave across requests.
    """

    def __init__(self, postgres_conn: psycopg2.extensions.connection):
        """Initialize storage.

        Args:
            postgres_conn: Postgres connection
        """
        self.conn = postgres_conn
        self._lock = threading.Lock()

    def create_braindump(self, raw_text: str, tasks: Sequence[TaskRow]) -> str:
        """Insert a braindump and its task rows in one transaction.

        Args:
            raw_text: Original braindump text
            tasks: Task rows to insert, in braindump order

        Returns:
            The braindump ID

        Raises:
            PersistenceError: If either insert fails (nothing is committed)
        """
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO braindumps (raw_text, task_count)
                        VALUES (%s, %s)
                        RETURNING id
                        """,
                        (raw_text, len(tasks)),
                    )
                    braindump_id = str(cur.fetchone()[0])

                    psycopg2.extras.execute_values(
                        cur,
                        """
                        INSERT INTO tasks (
                            braindump_id,
                            position,
                            content,
                            original_line,
                            normalized,
                            category,
                            priority,
                            priority_group,
                            action,
                            longevity,
                            quick_win,
                            urgency_rank,
                            shininess_rank,
                            status,
                            source
                        ) VALUES %s
                        """,
                        [
                            (
                                braindump_id,
                                position,
                                task.content,
                                task.content,
                                task.normalized,
                                task.category,
                                task.priority,
                                task.priority_group,
                                task.action,
                                task.longevity,
                                task.quick_win,
                                task.urgency_rank,
                                task.shininess_rank,
                                task.status,
                                task.source,
                            )
                            for position, task in enumerate(tasks)
                        ],
                    )
            except psycopg2.Error as e:
                logger.error(f"Failed to insert braindump: {e}")
                self.conn.rollback()
                raise PersistenceError(f"Failed to save braindump: {e}") from e

            self.conn.commit()
        logger.info(f"Committed braindump {braindump_id} with {len(tasks)} tasks")
        return braindump_id

    def get_history(self, limit: int) -> list[HistoricalTask]:
        """Get normalized task content from the most recent committed tasks.

        Args:
            limit: Maximum number of task rows to return

        Returns:
            Historical tasks, most recent first
        """
        rows = self._fetch(
            """
            SELECT braindump_id, normalized FROM tasks
            WHERE action = ANY(%s)
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (list(COMMITTED_ACTIONS), limit),
        )
        return [HistoricalTask(braindump_id=str(row["braindump_id"]), normalized=row["normalized"]) for row in rows]

    def braindump_exists(self, braindump_id: str) -> bool:
        rows = self._fetch("SELECT 1 AS found FROM braindumps WHERE id::text = %s", (braindump_id,))
        return bool(rows)

    def get_scorable_tasks(self, braindump_id: str) -> list[ScorableTask]:
        """Get kept and merged tasks of a braindump in creation order.

        Args:
            braindump_id: Braindump ID

        Returns:
            Tasks ordered by created_at, then id
        """
        rows = self._fetch(
            """
            SELECT id, content, category, priority_group, longevity, quick_win,
                   urgency_rank, shininess_rank
            FROM tasks
            WHERE braindump_id::text = %s AND action = ANY(%s)
            ORDER BY created_at ASC, id ASC
            """,
            (braindump_id, list(COMMITTED_ACTIONS)),
        )
        return [
            ScorableTask(
                id=row["id"],
                content=row["content"],
                category=row["category"],
                priority_group=row["priority_group"],
                longevity=row["longevity"],
                quick_win=row["quick_win"],
                urgency_rank=row["urgency_rank"],
                shininess_rank=row["shininess_rank"],
            )
            for row in rows
        ]

    def update_task_scores(self, scores: Sequence[tuple[int, float, int]]) -> None:
        """Write score and overall_rank for many tasks in one statement.

        Args:
            scores: (task_id, score, overall_rank) tuples

        Raises:
            PersistenceError: If the update fails
        """
        if not scores:
            return
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    psycopg2.extras.execute_values(
                        cur,
                        """
                        UPDATE tasks SET
                            score = data.score,
                            overall_rank = data.overall_rank
                        FROM (VALUES %s) AS data (id, score, overall_rank)
                        WHERE tasks.id = data.id
                        """,
                        list(scores),
                        template="(%s::bigint, %s::double precision, %s::integer)",
                    )
            except psycopg2.Error as e:
                logger.error(f"Failed to update task scores: {e}")
                self.conn.rollback()
                raise PersistenceError(f"Failed to update task scores: {e}") from e
            self.conn.commit()
        logger.info(f"Updated scores for {len(scores)} tasks")

    def merge_braindump_metadata(self, braindump_id: str, patch: dict[str, Any]) -> None:
        """Merge keys into braindump metadata (last write wins).

        Raises:
            PersistenceError: If the update fails
        """
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE braindumps
                        SET metadata = COALESCE(metadata, '{}'::jsonb) || %s
                        WHERE id::text = %s
                        """,
                        (psycopg2.extras.Json(patch), braindump_id),
                    )
            except psycopg2.Error as e:
                logger.error(f"Failed to update metadata for braindump {braindump_id}: {e}")
                self.conn.rollback()
                raise PersistenceError(f"Failed to update braindump metadata: {e}") from e
            self.conn.commit()
        logger.info(f"Updated metadata for braindump {braindump_id}")

    def close(self) -> None:
        with self._lock:
            self.conn.close()
        logger.info("Closed Postgres connection")

    def _fetch(self, query: str, params: tuple) -> list[dict[str, Any]]:
        with self._lock:
            try:
                with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
            except psycopg2.Error as e:
                logger.error(f"Query failed: {e}")
                self.conn.rollback()
                raise PersistenceError(f"Query failed: {e}") from e
            # Reads open a transaction too; end it so the connection is not left idle in one
            self.conn.commit()
        return rows  # type: ignore[no-any-return]
