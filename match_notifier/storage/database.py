"""SQLite record store for matches, users and notification records"""
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .models import Match, MatchStatus, NotificationRecord, User
from ..errors import StoreError

# Largest number of writes committed atomically in one batch
MAX_BATCH_SIZE = 500

_REMINDER_COLUMNS = ("reminder_24_sent", "reminder_2_sent")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _placeholders(values: Sequence) -> str:
    return ", ".join("?" for _ in values)


class Database:
    """SQLite-backed record store"""
    
    def __init__(
        self,
        db_path: str = "data/notifier.db",
        timeout: float = 5.0,
        max_batch_size: int = MAX_BATCH_SIZE
    ):
        """
        Initialize database
        
        Args:
            db_path: Path to the SQLite file
            timeout: Seconds to wait on a locked database before failing
            max_batch_size: Largest batch accepted by a single batch write
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        self.max_batch_size = max_batch_size
        self._init_db()
    
    def _init_db(self):
        """Create tables if they don't exist"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS matches (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    match_date TEXT NOT NULL,
                    match_time TEXT,
                    court_name TEXT NOT NULL,
                    player_ids TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL DEFAULT 60,
                    match_type TEXT NOT NULL,
                    max_players INTEGER NOT NULL,
                    min_rating REAL NOT NULL,
                    max_rating REAL NOT NULL,
                    sub_needed INTEGER NOT NULL DEFAULT 0,
                    reminder_24_sent INTEGER NOT NULL DEFAULT 0,
                    reminder_2_sent INTEGER NOT NULL DEFAULT 0,
                    cancel_reason TEXT,
                    updated_at TEXT
                )
            """)
            
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    fcm_token TEXT,
                    rating REAL NOT NULL DEFAULT 0,
                    sub_available INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT
                )
            """)
            
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS notifications (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    token TEXT,
                    tokens TEXT NOT NULL,
                    data TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    sent_at TEXT,
                    success_count INTEGER,
                    failure_count INTEGER,
                    error TEXT
                )
            """)
            
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_matches_status_date
                ON matches(status, match_date)
            """)
            
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_notifications_created_at
                ON notifications(created_at)
            """)
            
            conn.commit()
    
    @contextmanager
    def _get_connection(self):
        """Get database connection, translating driver errors to StoreError"""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Database operation failed: {e}") from e
        finally:
            conn.close()
    
    def _check_batch(self, ids: Sequence[str]):
        if len(ids) > self.max_batch_size:
            raise StoreError(
                f"Batch of {len(ids)} writes exceeds limit of {self.max_batch_size}"
            )
    
    # Matches
    
    def upsert_match(self, match: Match) -> Optional[Match]:
        """
        Insert or update a match
        
        Returns:
            The stored match as it was before the write, or None if it is new
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM matches WHERE id = ?", (match.id,)).fetchone()
            conn.execute("""
                INSERT OR REPLACE INTO matches
                (id, status, match_date, match_time, court_name, player_ids,
                 duration_minutes, match_type, max_players, min_rating, max_rating,
                 sub_needed, reminder_24_sent, reminder_2_sent, cancel_reason, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                match.id,
                match.status.value,
                match.match_date.isoformat(),
                match.match_time,
                match.court_name,
                json.dumps(match.player_ids),
                match.duration_minutes,
                match.match_type,
                match.max_players,
                match.min_rating,
                match.max_rating,
                int(match.sub_needed),
                int(match.reminder_24_sent),
                int(match.reminder_2_sent),
                match.cancel_reason,
                _iso(match.updated_at)
            ))
            conn.commit()
            return self._row_to_match(row) if row else None
    
    def get_match(self, match_id: str) -> Optional[Match]:
        """Get a match by ID"""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
            return self._row_to_match(row) if row else None
    
    def get_matches_in_window(
        self,
        statuses: Iterable[MatchStatus],
        start: datetime,
        end: datetime
    ) -> List[Match]:
        """Get matches with one of the statuses starting within [start, end]"""
        values = [s.value for s in statuses]
        with self._get_connection() as conn:
            cursor = conn.execute(f"""
                SELECT * FROM matches
                WHERE status IN ({_placeholders(values)})
                AND match_date >= ? AND match_date <= ?
                ORDER BY match_date ASC
            """, (*values, start.isoformat(), end.isoformat()))
            return [self._row_to_match(row) for row in cursor.fetchall()]
    
    def get_started_matches(
        self,
        statuses: Iterable[MatchStatus],
        before: datetime
    ) -> List[Match]:
        """Get matches with one of the statuses that started before a time"""
        values = [s.value for s in statuses]
        with self._get_connection() as conn:
            cursor = conn.execute(f"""
                SELECT * FROM matches
                WHERE status IN ({_placeholders(values)})
                AND match_date < ?
                ORDER BY match_date ASC
            """, (*values, before.isoformat()))
            return [self._row_to_match(row) for row in cursor.fetchall()]
    
    def claim_reminder(self, match_id: str, column: str) -> bool:
        """
        Atomically set a reminder flag if it is still unset.
        
        Args:
            match_id: Match to claim the reminder for
            column: 'reminder_24_sent' or 'reminder_2_sent'
        
        Returns:
            True if this call flipped the flag, False if it was already set
        """
        if column not in _REMINDER_COLUMNS:
            raise ValueError(f"Unknown reminder flag: {column}")
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE matches SET {column} = 1 WHERE id = ? AND {column} = 0",
                (match_id,)
            )
            conn.commit()
            return cursor.rowcount == 1
    
    def update_status_batch(
        self,
        match_ids: Sequence[str],
        status: MatchStatus,
        from_statuses: Iterable[MatchStatus],
        updated_at: datetime
    ) -> int:
        """
        Move matches to a status in one atomic batch.
        
        Only rows still in one of from_statuses are touched, so a match
        that reached a terminal status concurrently is left alone.
        
        Returns:
            Number of matches updated
        """
        self._check_batch(match_ids)
        if not match_ids:
            return 0
        allowed = [s.value for s in from_statuses]
        with self._get_connection() as conn:
            with conn:
                cursor = conn.execute(f"""
                    UPDATE matches SET status = ?, updated_at = ?
                    WHERE id IN ({_placeholders(match_ids)})
                    AND status IN ({_placeholders(allowed)})
                """, (status.value, updated_at.isoformat(), *match_ids, *allowed))
            return cursor.rowcount
    
    # Users
    
    def upsert_user(self, user: User) -> Optional[User]:
        """Insert or update a user, returning the previous row if there was one"""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user.id,)).fetchone()
            conn.execute("""
                INSERT OR REPLACE INTO users
                (id, display_name, fcm_token, rating, sub_available, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                user.id,
                user.display_name,
                user.fcm_token,
                user.rating,
                int(user.sub_available),
                _iso(user.created_at)
            ))
            conn.commit()
            return self._row_to_user(row) if row else None
    
    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID"""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None
    
    def get_users(self, user_ids: Sequence[str]) -> List[User]:
        """Get all existing users among the given IDs"""
        if not user_ids:
            return []
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT * FROM users WHERE id IN ({_placeholders(user_ids)})",
                tuple(user_ids)
            )
            return [self._row_to_user(row) for row in cursor.fetchall()]
    
    def find_substitutes(self, min_rating: float, max_rating: float) -> List[User]:
        """Get reachable users available as substitutes within a rating range"""
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT * FROM users
                WHERE sub_available = 1
                AND rating >= ? AND rating <= ?
                AND fcm_token IS NOT NULL AND fcm_token != ''
            """, (min_rating, max_rating))
            return [self._row_to_user(row) for row in cursor.fetchall()]
    
    # Notifications
    
    def insert_notification(self, record: NotificationRecord):
        """Insert a new notification record"""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO notifications
                (id, title, body, token, tokens, data, status, created_at,
                 sent_at, success_count, failure_count, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.id,
                record.title,
                record.body,
                record.token,
                json.dumps(record.tokens),
                json.dumps(record.data),
                record.status.value,
                record.created_at.isoformat(),
                _iso(record.sent_at),
                record.success_count,
                record.failure_count,
                record.error
            ))
            conn.commit()
    
    def update_notification(self, record: NotificationRecord):
        """Write back the delivery outcome of a notification record"""
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE notifications
                SET status = ?, sent_at = ?, success_count = ?, failure_count = ?, error = ?
                WHERE id = ?
            """, (
                record.status.value,
                _iso(record.sent_at),
                record.success_count,
                record.failure_count,
                record.error,
                record.id
            ))
            conn.commit()
    
    def get_notification(self, notification_id: str) -> Optional[NotificationRecord]:
        """Get a notification record by ID"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            ).fetchone()
            return self._row_to_notification(row) if row else None
    
    def get_notification_ids_before(self, cutoff: datetime) -> List[str]:
        """Get IDs of notification records created before a cutoff"""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT id FROM notifications WHERE created_at < ? ORDER BY created_at ASC",
                (cutoff.isoformat(),)
            )
            return [row['id'] for row in cursor.fetchall()]
    
    def delete_notifications_batch(self, notification_ids: Sequence[str]) -> int:
        """Delete notification records in one atomic batch"""
        self._check_batch(notification_ids)
        if not notification_ids:
            return 0
        with self._get_connection() as conn:
            with conn:
                cursor = conn.execute(
                    f"DELETE FROM notifications WHERE id IN ({_placeholders(notification_ids)})",
                    tuple(notification_ids)
                )
            return cursor.rowcount
    
    # Row conversion
    
    def _row_to_match(self, row: sqlite3.Row) -> Match:
        """Convert database row to Match object"""
        return Match(
            id=row['id'],
            status=MatchStatus(row['status']),
            match_date=datetime.fromisoformat(row['match_date']),
            match_time=row['match_time'],
            court_name=row['court_name'],
            player_ids=json.loads(row['player_ids']),
            duration_minutes=row['duration_minutes'],
            match_type=row['match_type'],
            max_players=row['max_players'],
            min_rating=row['min_rating'],
            max_rating=row['max_rating'],
            sub_needed=bool(row['sub_needed']),
            reminder_24_sent=bool(row['reminder_24_sent']),
            reminder_2_sent=bool(row['reminder_2_sent']),
            cancel_reason=row['cancel_reason'],
            updated_at=_parse(row['updated_at'])
        )
    
    def _row_to_user(self, row: sqlite3.Row) -> User:
        """Convert database row to User object"""
        return User(
            id=row['id'],
            display_name=row['display_name'],
            fcm_token=row['fcm_token'],
            rating=row['rating'],
            sub_available=bool(row['sub_available']),
            created_at=_parse(row['created_at'])
        )
    
    def _row_to_notification(self, row: sqlite3.Row) -> NotificationRecord:
        """Convert database row to NotificationRecord object"""
        return NotificationRecord(
            id=row['id'],
            title=row['title'],
            body=row['body'],
            token=row['token'],
            tokens=json.loads(row['tokens']),
            data=json.loads(row['data']),
            status=row['status'],
            created_at=datetime.fromisoformat(row['created_at']),
            sent_at=_parse(row['sent_at']),
            success_count=row['success_count'],
            failure_count=row['failure_count'],
            error=row['error']
        )
