# backend/app/db/sqlite_store.py

import sqlite3
import json
import threading
import time
from pathlib import Path
from typing import Optional, Dict, Any, List
from uuid import uuid4

from app.core.config_loader import settings
from app.core.errors import NotFoundError, StoreError, StoreWriteError
from app.core.logger import logger
from app.models.plan_models import PlanDocument
from app.utils.plan_mapping import plan_to_records
from app.utils.time_utils import now_utc


# Retry configuration
MAX_RETRIES = 5
RETRY_DELAY = 0.1  # 100ms

ACTIVITY_COLUMNS = ("name", "description", "latitude", "longitude", "duration", "cost", "category")


def _new_id() -> str:
    return str(uuid4())


class ItineraryStore:
    """
    SQLite persistence for users, trips and their day-by-day itineraries.

    One connection is shared between threads; every statement goes through
    `self._lock`, so a reader on this store never sees the middle of a
    `replace_plan` transaction. Other connections get the same guarantee
    from SQLite's WAL snapshots.
    """

    def __init__(self, db_path: Optional[str] = None):
        path = Path(db_path or settings.DB_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self.conn = sqlite3.connect(
            str(path),
            check_same_thread=False,
            timeout=30.0
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA busy_timeout=30000")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_tables()

    def _execute_with_retry(self, operation, *args, **kwargs):
        """Execute database operation with retry logic for handling locked database"""
        for attempt in range(MAX_RETRIES):
            try:
                with self._lock:
                    return operation(*args, **kwargs)
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                raise

    def _write(self, operation, *args, **kwargs):
        """Run a write in one transaction; any sqlite failure becomes StoreWriteError."""
        def _transaction():
            with self.conn:
                return operation(*args, **kwargs)

        try:
            return self._execute_with_retry(_transaction)
        except sqlite3.Error as e:
            logger.error(f"Store write failed in {operation.__name__}: {e}")
            raise StoreWriteError(f"Failed to write itinerary data: {e}") from e

    def _read(self, operation, *args, **kwargs):
        try:
            return self._execute_with_retry(operation, *args, **kwargs)
        except sqlite3.Error as e:
            logger.error(f"Store read failed in {operation.__name__}: {e}")
            raise StoreError(f"Failed to read itinerary data: {e}") from e

    def close(self):
        with self._lock:
            self.conn.close()

    # ----------------------------------------------------------------------
    # CREATE TABLES
    # ----------------------------------------------------------------------
    def _init_tables(self):
        cur = self.conn.cursor()

        cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT UNIQUE,
            full_name TEXT,
            hashed_password TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS trips (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            destination TEXT,
            budget REAL,
            start_date TEXT,
            end_date TEXT,
            status TEXT DEFAULT 'generating',
            preferences_json TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS daily_plans (
            id TEXT PRIMARY KEY,
            trip_id TEXT,
            date TEXT,
            estimated_cost REAL DEFAULT 0,
            FOREIGN KEY (trip_id) REFERENCES trips(id) ON DELETE CASCADE
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id TEXT PRIMARY KEY,
            daily_plan_id TEXT,
            name TEXT,
            description TEXT,
            latitude REAL,
            longitude REAL,
            duration INTEGER,
            cost REAL,
            category TEXT,
            FOREIGN KEY (daily_plan_id) REFERENCES daily_plans(id) ON DELETE CASCADE
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS meals (
            id TEXT PRIMARY KEY,
            daily_plan_id TEXT,
            name TEXT,
            latitude REAL,
            longitude REAL,
            meal_type TEXT,
            cost REAL,
            cuisine TEXT,
            FOREIGN KEY (daily_plan_id) REFERENCES daily_plans(id) ON DELETE CASCADE
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS transportations (
            id TEXT PRIMARY KEY,
            daily_plan_id TEXT,
            from_location TEXT,
            to_location TEXT,
            from_latitude REAL DEFAULT 0,
            from_longitude REAL DEFAULT 0,
            to_latitude REAL DEFAULT 0,
            to_longitude REAL DEFAULT 0,
            mode TEXT,
            duration INTEGER,
            cost REAL,
            FOREIGN KEY (daily_plan_id) REFERENCES daily_plans(id) ON DELETE CASCADE
        );
        """)

        # INDEXES
        cur.execute("CREATE INDEX IF NOT EXISTS idx_trip_user ON trips(user_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_day_trip ON daily_plans(trip_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_activity_day ON activities(daily_plan_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_meal_day ON meals(daily_plan_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_transport_day ON transportations(daily_plan_id);")

        self.conn.commit()

    # ----------------------------------------------------------------------
    # USER CRUD
    # ----------------------------------------------------------------------
    def create_user(self, email: str, full_name: str, hashed_password: str) -> str:
        user_id = _new_id()

        def _create_user():
            self.conn.execute("""
            INSERT INTO users (id, email, full_name, hashed_password)
            VALUES (?, ?, ?, ?)
            """, (user_id, email, full_name, hashed_password))

        self._write(_create_user)
        return user_id

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        def _get():
            row = self.conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return dict(row) if row else None

        return self._read(_get)

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        def _get():
            row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return dict(row) if row else None

        return self._read(_get)

    # ----------------------------------------------------------------------
    # TRIPS
    # ----------------------------------------------------------------------
    def create_trip(
        self, user_id: str, destination: str, budget: float,
        start_date: str, end_date: str,
        preferences: Optional[Dict[str, Any]] = None,
        status: str = "generating",
    ) -> Dict[str, Any]:
        trip_id = _new_id()

        def _create_trip():
            now = now_utc().isoformat()
            self.conn.execute("""
            INSERT INTO trips (id, user_id, destination, budget, start_date, end_date,
                               status, preferences_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                trip_id, user_id, destination, budget,
                start_date, end_date, status,
                json.dumps(preferences or {}),
                now, now,
            ))

        self._write(_create_trip)
        return self.get_trip(trip_id)

    def _trip_row(self, trip_id: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute("SELECT * FROM trips WHERE id = ?", (trip_id,)).fetchone()
        if not row:
            return None
        trip = dict(row)
        trip["preferences"] = json.loads(trip.pop("preferences_json") or "{}")
        return trip

    def _children(self, table: str, day_id: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            f"SELECT * FROM {table} WHERE daily_plan_id = ? ORDER BY rowid ASC", (day_id,)
        ).fetchall()
        return [dict(r) for r in rows]

    def _daily_plans(self, trip_id: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute("""
        SELECT * FROM daily_plans
        WHERE trip_id = ?
        ORDER BY date ASC, rowid ASC
        """, (trip_id,)).fetchall()

        days = []
        for r in rows:
            day = dict(r)
            day["activities"] = self._children("activities", day["id"])
            day["meals"] = self._children("meals", day["id"])
            day["transportations"] = self._children("transportations", day["id"])
            days.append(day)
        return days

    def get_trip(self, trip_id: str) -> Dict[str, Any]:
        """Trip with its full itinerary, read as one consistent snapshot."""
        def _get_trip():
            trip = self._trip_row(trip_id)
            if trip is None:
                return None
            trip["daily_plans"] = self._daily_plans(trip_id)
            return trip

        trip = self._read(_get_trip)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip

    def list_user_trips(self, user_id: str) -> List[Dict[str, Any]]:
        def _list():
            rows = self.conn.execute("""
            SELECT id FROM trips
            WHERE user_id = ?
            ORDER BY created_at DESC
            """, (user_id,)).fetchall()
            trips = []
            for r in rows:
                trip = self._trip_row(r["id"])
                trip["daily_plans"] = self._daily_plans(r["id"])
                trips.append(trip)
            return trips

        return self._read(_list)

    def delete_trip(self, trip_id: str):
        def _delete_trip():
            cur = self.conn.execute("DELETE FROM trips WHERE id = ?", (trip_id,))
            return cur.rowcount

        if not self._write(_delete_trip):
            raise NotFoundError(f"Trip {trip_id} not found")

    def _touch_trip(self, trip_id: str, **fields) -> int:
        fields["updated_at"] = now_utc().isoformat()
        assignments = ", ".join(f"{name}=?" for name in fields)
        cur = self.conn.execute(
            f"UPDATE trips SET {assignments} WHERE id = ?",
            (*fields.values(), trip_id),
        )
        return cur.rowcount

    def update_trip_budget(self, trip_id: str, amount: float):
        if not self._write(self._touch_trip, trip_id, budget=amount):
            raise NotFoundError(f"Trip {trip_id} not found")

    def update_trip_status(self, trip_id: str, status: str):
        if not self._write(self._touch_trip, trip_id, status=status):
            raise NotFoundError(f"Trip {trip_id} not found")

    # ----------------------------------------------------------------------
    # PLAN REPLACEMENT
    # ----------------------------------------------------------------------
    def replace_plan(self, trip_id: str, plan: PlanDocument, budget: Optional[float] = None):
        """
        Swap the whole itinerary body of a trip.

        Deleting the old day plans (children cascade), inserting the new ones
        and the optional budget change share a single transaction; if anything
        fails, the old plan and budget stay.
        """
        records = plan_to_records(plan)

        def _replace_plan():
            if not self.conn.execute("SELECT 1 FROM trips WHERE id = ?", (trip_id,)).fetchone():
                return False

            self.conn.execute("DELETE FROM daily_plans WHERE trip_id = ?", (trip_id,))

            for day in records:
                day_id = _new_id()
                self.conn.execute("""
                INSERT INTO daily_plans (id, trip_id, date, estimated_cost)
                VALUES (?, ?, ?, ?)
                """, (day_id, trip_id, day["date"], day["estimated_cost"]))

                self.conn.executemany("""
                INSERT INTO activities (id, daily_plan_id, name, description, latitude, longitude,
                                        duration, cost, category)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, [
                    (_new_id(), day_id, *(a[col] for col in ACTIVITY_COLUMNS))
                    for a in day["activities"]
                ])

                self.conn.executemany("""
                INSERT INTO meals (id, daily_plan_id, name, latitude, longitude, meal_type, cost, cuisine)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, [
                    (_new_id(), day_id, m["name"], m["latitude"], m["longitude"],
                     m["meal_type"], m["cost"], m["cuisine"])
                    for m in day["meals"]
                ])

                self.conn.executemany("""
                INSERT INTO transportations (id, daily_plan_id, from_location, to_location,
                                             from_latitude, from_longitude, to_latitude, to_longitude,
                                             mode, duration, cost)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, [
                    (_new_id(), day_id, t["from_location"], t["to_location"],
                     t["from_latitude"], t["from_longitude"], t["to_latitude"], t["to_longitude"],
                     t["mode"], t["duration"], t["cost"])
                    for t in day["transportations"]
                ])

            if budget is not None:
                self._touch_trip(trip_id, budget=budget)
            else:
                self._touch_trip(trip_id)
            return True

        if not self._write(_replace_plan):
            raise NotFoundError(f"Trip {trip_id} not found")

        logger.info(f"Replaced plan for trip {trip_id}: {len(records)} days")

    # ----------------------------------------------------------------------
    # ACTIVITIES
    # ----------------------------------------------------------------------
    def get_activity(self, activity_id: str) -> Dict[str, Any]:
        def _get():
            row = self.conn.execute("""
            SELECT a.*, d.trip_id AS trip_id
            FROM activities a JOIN daily_plans d ON d.id = a.daily_plan_id
            WHERE a.id = ?
            """, (activity_id,)).fetchone()
            return dict(row) if row else None

        activity = self._read(_get)
        if activity is None:
            raise NotFoundError(f"Activity {activity_id} not found")
        return activity

    def update_activity(self, activity_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in updates.items() if k in ACTIVITY_COLUMNS and v is not None}

        def _update():
            if not fields:
                return 1
            assignments = ", ".join(f"{name}=?" for name in fields)
            cur = self.conn.execute(
                f"UPDATE activities SET {assignments} WHERE id = ?",
                (*fields.values(), activity_id),
            )
            return cur.rowcount

        if not self._write(_update):
            raise NotFoundError(f"Activity {activity_id} not found")
        return self.get_activity(activity_id)

    def delete_activity(self, activity_id: str):
        def _delete():
            return self.conn.execute("DELETE FROM activities WHERE id = ?", (activity_id,)).rowcount

        if not self._write(_delete):
            raise NotFoundError(f"Activity {activity_id} not found")
