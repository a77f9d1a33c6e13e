"""SQLite data store for pricewatch."""

import logging
import sqlite3
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from pricewatch.engine.evaluator import validate_condition
from pricewatch.models import (
    Alert,
    AlertStatus,
    Condition,
    ConditionType,
    InstrumentSummary,
    Priority,
    WatchedInstrument,
)

logger = logging.getLogger(__name__)

HIGH_PRIORITIES = (Priority.HIGH, Priority.URGENT)

CONDITION_COLUMNS = """
    c.id, c.watchlist_id, c.user_id, c.condition_type, c.threshold, c.base_price,
    c.is_active, c.last_fired_at, c.description, c.created_at, c.updated_at,
    w.instrument_code, w.instrument_name
"""

ALERT_COLUMNS = """
    id, condition_id, watchlist_id, user_id, instrument_code, instrument_name,
    alert_type, title, message, priority, trigger_price, base_price,
    change_amount, change_percentage, triggered_at, is_read, read_at, status
"""


class CleanupResult(BaseModel):
    """Row counts removed by a cleanup run."""

    read_alerts: int = 0
    expired_alerts: int = 0
    conditions: int = 0

    model_config = {"frozen": True}

    @property
    def total_alerts(self) -> int:
        return self.read_alerts + self.expired_alerts


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _dec(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _dec_text(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


class DataStore:
    """SQLite-based condition, alert and price store.

    Every operation opens its own connection, so one store may be shared by
    the worker threads of a monitoring pass. The two writes the monitoring
    cycle performs (:meth:`set_base_price` and :meth:`record_fire`) are
    conditional updates, which keeps overlapping passes from double-firing.
    """

    REQUIRED_TABLES = [
        "watchlist",
        "conditions",
        "alerts",
        "instrument_prices",
    ]

    def __init__(self, db_path: Path, timeout: float = 30.0):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
            timeout: Seconds to wait on a locked database.
        """
        self.db_path = db_path
        self.timeout = timeout
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS watchlist (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    instrument_code TEXT NOT NULL,
                    instrument_name TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    notification_enabled INTEGER NOT NULL DEFAULT 1,
                    memo TEXT,
                    created_at TEXT NOT NULL,
                    removed_at TEXT,
                    UNIQUE(user_id, instrument_code)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS conditions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    watchlist_id INTEGER NOT NULL REFERENCES watchlist(id) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL,
                    condition_type TEXT NOT NULL,
                    threshold TEXT NOT NULL,
                    base_price TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_fired_at TEXT,
                    description TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    condition_id INTEGER NOT NULL REFERENCES conditions(id) ON DELETE CASCADE,
                    watchlist_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    instrument_code TEXT NOT NULL,
                    instrument_name TEXT NOT NULL,
                    alert_type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'NORMAL',
                    trigger_price TEXT NOT NULL,
                    base_price TEXT NOT NULL,
                    change_amount TEXT NOT NULL,
                    change_percentage TEXT NOT NULL,
                    triggered_at TEXT NOT NULL,
                    is_read INTEGER NOT NULL DEFAULT 0,
                    read_at TEXT,
                    status TEXT NOT NULL DEFAULT 'ACTIVE'
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS instrument_prices (
                    instrument_code TEXT PRIMARY KEY,
                    instrument_name TEXT NOT NULL,
                    current_price TEXT NOT NULL,
                    prior_close_price TEXT,
                    change_percent TEXT,
                    as_of TEXT NOT NULL
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_conditions_active ON conditions(is_active)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_user ON alerts(user_id, triggered_at)"
            )

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Row mapping ====================

    @staticmethod
    def _row_to_instrument(row: sqlite3.Row) -> WatchedInstrument:
        return WatchedInstrument(
            id=row["id"],
            user_id=row["user_id"],
            instrument_code=row["instrument_code"],
            instrument_name=row["instrument_name"],
            active=bool(row["is_active"]),
            notification_enabled=bool(row["notification_enabled"]),
            memo=row["memo"],
            created_at=datetime.fromisoformat(row["created_at"]),
            removed_at=_dt(row["removed_at"]),
        )

    @staticmethod
    def _row_to_condition(row: sqlite3.Row) -> Condition:
        return Condition(
            id=row["id"],
            watchlist_id=row["watchlist_id"],
            user_id=row["user_id"],
            instrument_code=row["instrument_code"],
            instrument_name=row["instrument_name"],
            type=ConditionType(row["condition_type"]),
            threshold=Decimal(row["threshold"]),
            base_price=_dec(row["base_price"]),
            active=bool(row["is_active"]),
            last_fired_at=_dt(row["last_fired_at"]),
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> Alert:
        return Alert(
            id=row["id"],
            condition_id=row["condition_id"],
            watchlist_id=row["watchlist_id"],
            user_id=row["user_id"],
            instrument_code=row["instrument_code"],
            instrument_name=row["instrument_name"],
            alert_type=ConditionType(row["alert_type"]),
            title=row["title"],
            message=row["message"],
            priority=Priority(row["priority"]),
            trigger_price=Decimal(row["trigger_price"]),
            base_price=Decimal(row["base_price"]),
            change_amount=Decimal(row["change_amount"]),
            change_percentage=Decimal(row["change_percentage"]),
            triggered_at=datetime.fromisoformat(row["triggered_at"]),
            read=bool(row["is_read"]),
            read_at=_dt(row["read_at"]),
            status=AlertStatus(row["status"]),
        )

    # ==================== Watchlist ====================

    def add_instrument(
        self,
        user_id: int,
        instrument_code: str,
        instrument_name: str,
        memo: Optional[str] = None,
    ) -> WatchedInstrument:
        """Add an instrument to a user's watchlist.

        A previously removed entry is re-activated instead of duplicated.

        Args:
            user_id: Owning user.
            instrument_code: Instrument code.
            instrument_name: Display name.
            memo: Optional memo.

        Returns:
            The watched instrument.
        """
        now = datetime.now().isoformat()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO watchlist
                (user_id, instrument_code, instrument_name, memo, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, instrument_code) DO UPDATE SET
                    instrument_name = excluded.instrument_name,
                    memo = COALESCE(excluded.memo, watchlist.memo),
                    is_active = 1,
                    removed_at = NULL
                """,
                (user_id, instrument_code, instrument_name, memo, now),
            )
            conn.commit()
            cursor.execute(
                "SELECT * FROM watchlist WHERE user_id = ? AND instrument_code = ?",
                (user_id, instrument_code),
            )
            return self._row_to_instrument(cursor.fetchone())
        finally:
            conn.close()

    def get_instrument(self, user_id: int, instrument_code: str) -> Optional[WatchedInstrument]:
        """Get a watched instrument by user and code.

        Returns:
            WatchedInstrument if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM watchlist WHERE user_id = ? AND instrument_code = ?",
                (user_id, instrument_code),
            )
            row = cursor.fetchone()
            return self._row_to_instrument(row) if row else None
        finally:
            conn.close()

    def get_instruments(self, user_id: int, active_only: bool = True) -> list[WatchedInstrument]:
        """Get a user's watched instruments."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            query = "SELECT * FROM watchlist WHERE user_id = ?"
            if active_only:
                query += " AND is_active = 1"
            cursor.execute(query + " ORDER BY instrument_code", (user_id,))
            return [self._row_to_instrument(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def remove_instrument(self, user_id: int, instrument_code: str) -> None:
        """Stop watching an instrument and deactivate its conditions.

        Raises:
            ValueError: If the instrument is not on the user's watchlist.
        """
        now = datetime.now().isoformat()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE watchlist SET is_active = 0, removed_at = ?
                WHERE user_id = ? AND instrument_code = ? AND is_active = 1
                """,
                (now, user_id, instrument_code),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"{instrument_code} is not on the watchlist")
            cursor.execute(
                """
                UPDATE conditions SET is_active = 0, updated_at = ?
                WHERE is_active = 1 AND watchlist_id = (
                    SELECT id FROM watchlist WHERE user_id = ? AND instrument_code = ?
                )
                """,
                (now, user_id, instrument_code),
            )
            conn.commit()
        finally:
            conn.close()

    def set_notifications(self, user_id: int, instrument_code: str, enabled: bool) -> int:
        """Enable or disable notifications for a watched instrument.

        Muted entries are skipped by :meth:`list_monitorable`; their
        conditions keep their own active state. Re-enabling clears the base
        price of the entry's active conditions so that the next monitoring
        pass fixes a fresh one.

        Returns:
            Number of active conditions on the entry.

        Raises:
            ValueError: If the instrument is not actively watched.
        """
        instrument = self.get_instrument(user_id, instrument_code)
        if instrument is None or not instrument.active:
            raise ValueError(f"{instrument_code} is not on the watchlist")

        now = datetime.now().isoformat()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE watchlist SET notification_enabled = ? WHERE id = ?",
                (1 if enabled else 0, instrument.id),
            )
            if enabled:
                cursor.execute(
                    """
                    UPDATE conditions SET base_price = NULL, updated_at = ?
                    WHERE watchlist_id = ? AND is_active = 1
                    """,
                    (now, instrument.id),
                )
                affected = cursor.rowcount
            else:
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM conditions WHERE watchlist_id = ? AND is_active = 1",
                    (instrument.id,),
                )
                affected = cursor.fetchone()["count"]
            conn.commit()
            return affected
        finally:
            conn.close()

    # ==================== Conditions ====================

    def create_condition(
        self,
        user_id: int,
        instrument_code: str,
        condition_type: ConditionType,
        threshold: Decimal,
        description: Optional[str] = None,
        base_price: Optional[Decimal] = None,
    ) -> Condition:
        """Create a condition on an actively watched instrument.

        Args:
            user_id: Owning user.
            instrument_code: Instrument code.
            condition_type: Rule type.
            threshold: Rule threshold.
            description: Optional annotation.
            base_price: Optional reference price. When omitted, the first
                monitoring pass fixes it.

        Returns:
            The saved condition.

        Raises:
            ValueError: If the instrument is not watched, the threshold is
                invalid for the type, the base price is not positive, or an
                identical active condition exists.
        """
        instrument = self.get_instrument(user_id, instrument_code)
        if instrument is None or not instrument.active:
            raise ValueError(
                f"{instrument_code} is not on the watchlist. Add it before setting conditions."
            )
        if not validate_condition(condition_type, threshold):
            raise ValueError(
                f"Invalid threshold {threshold} for {condition_type.value} condition"
            )
        if base_price is not None and base_price <= 0:
            raise ValueError(f"Base price must be positive, got {base_price}")
        self._check_activatable(user_id, instrument_code, condition_type)

        condition = Condition(
            watchlist_id=instrument.id,
            user_id=user_id,
            instrument_code=instrument.instrument_code,
            instrument_name=instrument.instrument_name,
            type=condition_type,
            threshold=threshold,
            base_price=base_price,
            description=description,
        )
        condition_id = self.save_condition(condition)
        logger.info(
            "Created condition %s: %s %s on %s",
            condition_id, condition_type.value, threshold, instrument_code,
        )
        return self.get_condition(condition_id)

    def _check_activatable(
        self,
        user_id: int,
        instrument_code: str,
        condition_type: ConditionType,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Check that a condition of this type may be active on the instrument.

        Raises:
            ValueError: If the instrument is not actively watched, or another
                active condition of the same type already exists on it.
        """
        instrument = self.get_instrument(user_id, instrument_code)
        if instrument is None or not instrument.active:
            raise ValueError(
                f"{instrument_code} is not on the watchlist. Add it before setting conditions."
            )

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT COUNT(*) AS count FROM conditions
                WHERE user_id = ? AND watchlist_id = ? AND condition_type = ? AND is_active = 1
                  AND id IS NOT ?
                """,
                (user_id, instrument.id, condition_type.value, exclude_id),
            )
            if cursor.fetchone()["count"] > 0:
                raise ValueError(
                    f"An active {condition_type.value} condition already exists for {instrument_code}"
                )
        finally:
            conn.close()

    def save_condition(self, condition: Condition) -> int:
        """Insert a new condition or update an existing one.

        Args:
            condition: Condition to save.

        Returns:
            The condition ID.
        """
        now = datetime.now().isoformat()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            if condition.id is None:
                cursor.execute(
                    """
                    INSERT INTO conditions
                    (watchlist_id, user_id, condition_type, threshold, base_price,
                     is_active, last_fired_at, description, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        condition.watchlist_id,
                        condition.user_id,
                        condition.type.value,
                        str(condition.threshold),
                        _dec_text(condition.base_price),
                        1 if condition.active else 0,
                        _iso(condition.last_fired_at),
                        condition.description,
                        condition.created_at.isoformat(),
                        now,
                    ),
                )
                condition_id = cursor.lastrowid or 0
            else:
                cursor.execute(
                    """
                    UPDATE conditions SET
                        threshold = ?, base_price = ?, is_active = ?,
                        last_fired_at = ?, description = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        str(condition.threshold),
                        _dec_text(condition.base_price),
                        1 if condition.active else 0,
                        _iso(condition.last_fired_at),
                        condition.description,
                        now,
                        condition.id,
                    ),
                )
                condition_id = condition.id
            conn.commit()
            return condition_id
        finally:
            conn.close()

    def get_condition(self, condition_id: int) -> Optional[Condition]:
        """Get a condition by ID.

        Returns:
            Condition if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {CONDITION_COLUMNS}
                FROM conditions c JOIN watchlist w ON w.id = c.watchlist_id
                WHERE c.id = ?
                """,
                (condition_id,),
            )
            row = cursor.fetchone()
            return self._row_to_condition(row) if row else None
        finally:
            conn.close()

    def get_conditions(self, user_id: int, active_only: bool = True) -> list[Condition]:
        """Get a user's conditions."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            query = f"""
                SELECT {CONDITION_COLUMNS}
                FROM conditions c JOIN watchlist w ON w.id = c.watchlist_id
                WHERE c.user_id = ?
            """
            if active_only:
                query += " AND c.is_active = 1"
            cursor.execute(query + " ORDER BY c.id", (user_id,))
            return [self._row_to_condition(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def list_monitorable(self, instrument_code: Optional[str] = None) -> list[Condition]:
        """Get every condition a monitoring pass should evaluate.

        A condition is monitorable when it is active and its watched
        instrument is active with notifications enabled.

        Args:
            instrument_code: Optionally restrict to one instrument.

        Returns:
            List of monitorable conditions.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            query = f"""
                SELECT {CONDITION_COLUMNS}
                FROM conditions c JOIN watchlist w ON w.id = c.watchlist_id
                WHERE c.is_active = 1 AND w.is_active = 1 AND w.notification_enabled = 1
            """
            params: tuple = ()
            if instrument_code is not None:
                query += " AND w.instrument_code = ?"
                params = (instrument_code,)
            cursor.execute(query + " ORDER BY c.id", params)
            return [self._row_to_condition(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def _owned_condition(self, condition_id: int, user_id: int) -> Condition:
        condition = self.get_condition(condition_id)
        if condition is None:
            raise ValueError(f"Condition {condition_id} not found")
        if condition.user_id != user_id:
            raise ValueError(f"Condition {condition_id} belongs to another user")
        return condition

    def update_condition(
        self,
        condition_id: int,
        user_id: int,
        threshold: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Condition:
        """Update an active condition's threshold and/or description.

        A changed threshold clears the base price so the next pass re-fixes it.

        Raises:
            ValueError: If the condition is missing, not owned, inactive, or
                the new threshold is invalid.
        """
        condition = self._owned_condition(condition_id, user_id)
        if not condition.active:
            raise ValueError(f"Condition {condition_id} is inactive and cannot be edited")

        updates: dict = {}
        if description is not None:
            updates["description"] = description
        if threshold is not None:
            if not validate_condition(condition.type, threshold):
                raise ValueError(
                    f"Invalid threshold {threshold} for {condition.type.value} condition"
                )
            updates["threshold"] = threshold
            updates["base_price"] = None

        if updates:
            self.save_condition(condition.model_copy(update=updates))
        return self.get_condition(condition_id)

    def toggle_condition(self, condition_id: int, user_id: int) -> bool:
        """Flip a condition between active and inactive.

        Returns:
            The new active state.

        Raises:
            ValueError: If re-activation would put a second active condition
                of the same type on the instrument, or the instrument is no
                longer watched.
        """
        condition = self._owned_condition(condition_id, user_id)
        new_state = not condition.active
        updates: dict = {"active": new_state}
        if new_state:
            self._check_activatable(
                user_id, condition.instrument_code, condition.type, exclude_id=condition.id
            )
            updates["base_price"] = None
        self.save_condition(condition.model_copy(update=updates))
        return new_state

    def deactivate_condition(self, condition_id: int, user_id: int) -> None:
        """Deactivate a condition. Conditions are never hard-deleted here."""
        condition = self._owned_condition(condition_id, user_id)
        if condition.active:
            self.save_condition(condition.model_copy(update={"active": False}))

    def set_base_price(self, condition_id: int, base_price: Decimal) -> bool:
        """Fix a condition's base price if it has none yet.

        Returns:
            True if the base price was written, False if one was already set.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE conditions SET base_price = ?, updated_at = ?
                WHERE id = ? AND base_price IS NULL
                """,
                (str(base_price), datetime.now().isoformat(), condition_id),
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def record_fire(self, alert: Alert, condition: Condition, now: datetime) -> Optional[int]:
        """Persist an alert and stamp the condition's ``last_fired_at`` atomically.

        The stamp is a compare-and-set against the ``last_fired_at`` the caller
        observed. If another pass fired the condition in the meantime nothing
        is written.

        Args:
            alert: The alert to save.
            condition: The condition as it was read at the start of the pass.
            now: Fire timestamp.

        Returns:
            The new alert ID, or None if the condition was fired concurrently.
        """
        conn = self._get_connection()
        conn.isolation_level = None
        try:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                cursor.execute(
                    """
                    UPDATE conditions SET last_fired_at = ?, updated_at = ?
                    WHERE id = ? AND is_active = 1 AND last_fired_at IS ?
                    """,
                    (now.isoformat(), now.isoformat(), condition.id, _iso(condition.last_fired_at)),
                )
                if cursor.rowcount != 1:
                    cursor.execute("ROLLBACK")
                    return None
                alert_id = self._insert_alert(cursor, alert)
                cursor.execute("COMMIT")
                return alert_id
            except Exception:
                cursor.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    # ==================== Alerts ====================

    @staticmethod
    def _insert_alert(cursor: sqlite3.Cursor, alert: Alert) -> int:
        cursor.execute(
            """
            INSERT INTO alerts
            (condition_id, watchlist_id, user_id, instrument_code, instrument_name,
             alert_type, title, message, priority, trigger_price, base_price,
             change_amount, change_percentage, triggered_at, is_read, read_at, status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                alert.condition_id,
                alert.watchlist_id,
                alert.user_id,
                alert.instrument_code,
                alert.instrument_name,
                alert.alert_type.value,
                alert.title,
                alert.message,
                alert.priority.value,
                str(alert.trigger_price),
                str(alert.base_price),
                str(alert.change_amount),
                str(alert.change_percentage),
                alert.triggered_at.isoformat(),
                1 if alert.read else 0,
                _iso(alert.read_at),
                alert.status.value,
            ),
        )
        return cursor.lastrowid or 0

    def save_alert(self, alert: Alert) -> int:
        """Save an alert to the database.

        Returns:
            The ID of the saved alert.
        """
        conn = self._get_connection()
        try:
            alert_id = self._insert_alert(conn.cursor(), alert)
            conn.commit()
            return alert_id
        finally:
            conn.close()

    def get_alerts(
        self,
        user_id: Optional[int] = None,
        unread_only: bool = False,
        instrument_code: Optional[str] = None,
        since: Optional[datetime] = None,
        priorities: Optional[Iterable[Priority]] = None,
        limit: Optional[int] = None,
    ) -> list[Alert]:
        """Get alerts, newest first.

        Args:
            user_id: Restrict to one user.
            unread_only: Only unread alerts.
            instrument_code: Restrict to one instrument.
            since: Only alerts triggered after this time.
            priorities: Only alerts with one of these priorities.
            limit: Maximum number of alerts.

        Returns:
            List of alerts.
        """
        clauses, params = self._alert_filters(user_id, unread_only, instrument_code, since, priorities)
        query = f"SELECT {ALERT_COLUMNS} FROM alerts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY triggered_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_alert(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def count_alerts(
        self,
        user_id: Optional[int] = None,
        unread_only: bool = False,
        since: Optional[datetime] = None,
        priorities: Optional[Iterable[Priority]] = None,
    ) -> int:
        """Count alerts matching the same filters as :meth:`get_alerts`."""
        clauses, params = self._alert_filters(user_id, unread_only, None, since, priorities)
        query = "SELECT COUNT(*) AS count FROM alerts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchone()["count"]
        finally:
            conn.close()

    @staticmethod
    def _alert_filters(
        user_id: Optional[int],
        unread_only: bool,
        instrument_code: Optional[str],
        since: Optional[datetime],
        priorities: Optional[Iterable[Priority]],
    ) -> tuple[list[str], list]:
        clauses: list[str] = []
        params: list = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if unread_only:
            clauses.append("is_read = 0")
        if instrument_code is not None:
            clauses.append("instrument_code = ?")
            params.append(instrument_code)
        if since is not None:
            clauses.append("triggered_at > ?")
            params.append(since.isoformat())
        if priorities is not None:
            values = [p.value for p in priorities]
            clauses.append(f"priority IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        return clauses, params

    def count_unread(self, user_id: int) -> int:
        """Count a user's unread alerts."""
        return self.count_alerts(user_id=user_id, unread_only=True)

    def get_recent_alerts(self, since: datetime, user_id: Optional[int] = None) -> list[Alert]:
        """Get alerts triggered after ``since``."""
        return self.get_alerts(user_id=user_id, since=since)

    def get_high_priority_alerts(self, user_id: int) -> list[Alert]:
        """Get a user's HIGH and URGENT alerts."""
        return self.get_alerts(user_id=user_id, priorities=HIGH_PRIORITIES)

    def get_alert_by_id(self, alert_id: int) -> Optional[Alert]:
        """Get an alert by ID.

        Returns:
            Alert if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {ALERT_COLUMNS} FROM alerts WHERE id = ?", (alert_id,))
            row = cursor.fetchone()
            return self._row_to_alert(row) if row else None
        finally:
            conn.close()

    def get_alert(self, alert_id: int, user_id: int) -> Optional[Alert]:
        """Get one of a user's alerts. Other users' alerts are not returned."""
        alert = self.get_alert_by_id(alert_id)
        if alert is not None and alert.user_id != user_id:
            logger.warning("User %s requested alert %s owned by another user", user_id, alert_id)
            return None
        return alert

    def _owned_alert(self, alert_id: int, user_id: int) -> Alert:
        alert = self.get_alert_by_id(alert_id)
        if alert is None:
            raise ValueError(f"Alert {alert_id} not found")
        if alert.user_id != user_id:
            raise ValueError(f"Alert {alert_id} belongs to another user")
        return alert

    def _execute(self, query: str, params: tuple) -> int:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def mark_read(self, alert_id: int, user_id: int, now: Optional[datetime] = None) -> None:
        """Mark an alert as read. Already-read alerts keep their ``read_at``."""
        self._owned_alert(alert_id, user_id)
        self._execute(
            "UPDATE alerts SET is_read = 1, read_at = ? WHERE id = ? AND is_read = 0",
            ((now or datetime.now()).isoformat(), alert_id),
        )

    def mark_unread(self, alert_id: int, user_id: int) -> None:
        """Mark an alert as unread."""
        self._owned_alert(alert_id, user_id)
        self._execute(
            "UPDATE alerts SET is_read = 0, read_at = NULL WHERE id = ?",
            (alert_id,),
        )

    def mark_all_read(self, user_id: int, now: Optional[datetime] = None) -> int:
        """Mark all of a user's unread alerts as read.

        Returns:
            Number of alerts updated.
        """
        return self._execute(
            "UPDATE alerts SET is_read = 1, read_at = ? WHERE user_id = ? AND is_read = 0",
            ((now or datetime.now()).isoformat(), user_id),
        )

    def mark_watchlist_read(self, watchlist_id: int, now: Optional[datetime] = None) -> int:
        """Mark every unread alert of one watched instrument as read."""
        return self._execute(
            "UPDATE alerts SET is_read = 1, read_at = ? WHERE watchlist_id = ? AND is_read = 0",
            ((now or datetime.now()).isoformat(), watchlist_id),
        )

    def dismiss_alert(self, alert_id: int, user_id: int, now: Optional[datetime] = None) -> None:
        """Dismiss an alert. Dismissed alerts are also marked read."""
        self._owned_alert(alert_id, user_id)
        self._execute(
            """
            UPDATE alerts SET status = ?, is_read = 1, read_at = COALESCE(read_at, ?)
            WHERE id = ?
            """,
            (AlertStatus.DISMISSED.value, (now or datetime.now()).isoformat(), alert_id),
        )

    def expire_alerts(self, before: datetime) -> int:
        """Expire active alerts triggered before a cutoff.

        Returns:
            Number of alerts expired.
        """
        return self._execute(
            "UPDATE alerts SET status = ? WHERE status = ? AND triggered_at < ?",
            (AlertStatus.EXPIRED.value, AlertStatus.ACTIVE.value, before.isoformat()),
        )

    def cleanup(self, now: Optional[datetime] = None, retention_days: int = 30) -> CleanupResult:
        """Delete old read alerts, expired alerts and stale inactive conditions.

        Args:
            now: Reference time.
            retention_days: Age after which read alerts and inactive
                conditions are removed.

        Returns:
            CleanupResult with the number of rows removed.
        """
        cutoff = ((now or datetime.now()) - timedelta(days=retention_days)).isoformat()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM alerts WHERE is_read = 1 AND read_at < ?",
                (cutoff,),
            )
            read_alerts = cursor.rowcount
            cursor.execute(
                "DELETE FROM alerts WHERE status = ?",
                (AlertStatus.EXPIRED.value,),
            )
            expired_alerts = cursor.rowcount
            cursor.execute(
                "DELETE FROM conditions WHERE is_active = 0 AND updated_at < ?",
                (cutoff,),
            )
            conditions = cursor.rowcount
            conn.commit()
        finally:
            conn.close()

        result = CleanupResult(
            read_alerts=read_alerts,
            expired_alerts=expired_alerts,
            conditions=conditions,
        )
        logger.info(
            "Cleanup removed %d alerts (%d read, %d expired) and %d conditions",
            result.total_alerts, read_alerts, expired_alerts, conditions,
        )
        return result

    # ==================== Prices ====================

    def save_price(self, summary: InstrumentSummary) -> None:
        """Save the latest summary for an instrument, replacing any previous one."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO instrument_prices
                (instrument_code, instrument_name, current_price, prior_close_price,
                 change_percent, as_of)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    summary.instrument_code,
                    summary.instrument_name,
                    str(summary.current_price),
                    _dec_text(summary.prior_close_price),
                    _dec_text(summary.change_percent),
                    summary.as_of.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_price(self, instrument_code: str) -> Optional[InstrumentSummary]:
        """Get the latest summary for an instrument.

        Returns:
            InstrumentSummary if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM instrument_prices WHERE instrument_code = ?",
                (instrument_code,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return InstrumentSummary(
                instrument_code=row["instrument_code"],
                instrument_name=row["instrument_name"],
                current_price=Decimal(row["current_price"]),
                prior_close_price=_dec(row["prior_close_price"]),
                change_percent=_dec(row["change_percent"]),
                as_of=datetime.fromisoformat(row["as_of"]),
            )
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_alert_type_counts(self, user_id: Optional[int] = None) -> dict[str, int]:
        """Count alerts per alert type."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            query = "SELECT alert_type, COUNT(*) AS count FROM alerts"
            params: tuple = ()
            if user_id is not None:
                query += " WHERE user_id = ?"
                params = (user_id,)
            cursor.execute(query + " GROUP BY alert_type", params)
            return {row["alert_type"]: row["count"] for row in cursor.fetchall()}
        finally:
            conn.close()

    def get_condition_type_counts(
        self, user_id: Optional[int] = None, active_only: bool = True
    ) -> dict[str, int]:
        """Count conditions per condition type."""
        clauses: list[str] = []
        params: list = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if active_only:
            clauses.append("is_active = 1")
        query = "SELECT condition_type, COUNT(*) AS count FROM conditions"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(query + " GROUP BY condition_type", params)
            return {row["condition_type"]: row["count"] for row in cursor.fetchall()}
        finally:
            conn.close()

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
