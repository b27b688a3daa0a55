"""Repository layer responsible for all database access."""

from __future__ import annotations

import random
import sqlite3
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from backend.domain.constraints import validate_room
from backend.domain.models import Booking, BookingStatus, Room
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class BookingOverlapError(RuntimeError):
    """Raised when a write would overlap a stored non-cancelled booking."""

    def __init__(self, conflicts: list[Booking]) -> None:
        self.conflicts = conflicts
        super().__init__(
            f"Room has {len(conflicts)} overlapping booking(s): "
            + ", ".join(conflict.booking_id for conflict in conflicts)
        )


class DataRepository:
    """Encapsulates SQLite access so the calendar engine stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        total_units INTEGER NOT NULL DEFAULT 1 CHECK (total_units > 0),
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        min_stay_nights INTEGER NOT NULL DEFAULT 1 CHECK (min_stay_nights >= 1),
                        max_stay_nights INTEGER,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (max_stay_nights IS NULL OR max_stay_nights >= min_stay_nights)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        check_in TEXT NOT NULL,
                        check_out TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending',
                        guest_name TEXT NOT NULL,
                        guest_email TEXT,
                        guest_phone TEXT,
                        total_amount REAL NOT NULL DEFAULT 0 CHECK (total_amount >= 0),
                        currency TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (check_out > check_in),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_room_dates
                    ON Bookings(room_id, check_in, check_out);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed deterministic rooms and bookings only when tables are empty."""
        rng = random.Random(self._settings.seed_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                rooms = [
                    ("room-garden", "Garden Suite", 1, 1, 2, None),
                    ("room-ocean", "Ocean View", 1, 1, 1, 14),
                    ("room-loft", "Loft", 1, 1, 1, None),
                    ("room-family", "Family Room", 2, 1, 2, 21),
                    ("room-cottage", "Cottage", 1, 1, 3, None),
                ]
                cursor.executemany(
                    """
                    INSERT INTO Rooms (id, name, total_units, is_active, min_stay_nights, max_stay_nights)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    rooms,
                )

                guests = ["Thandi Mokoena", "Pieter Botha", "Aisha Khan", "Liam Murphy", "Ana Silva"]
                statuses = [
                    BookingStatus.CONFIRMED,
                    BookingStatus.CONFIRMED,
                    BookingStatus.PENDING,
                    BookingStatus.CHECKED_IN,
                    BookingStatus.CANCELLED,
                ]
                start_date = datetime.now(timezone.utc).date() - timedelta(days=7)
                horizon = start_date + timedelta(days=self._settings.seed_days)

                booking_entries = []
                for room_id, _, _, _, min_stay, _ in rooms:
                    cursor_day = start_date + timedelta(days=rng.randint(0, 2))
                    while cursor_day < horizon:
                        stay = rng.randint(min_stay, min_stay + 4)
                        check_out = cursor_day + timedelta(days=stay)
                        booking_entries.append(
                            (
                                str(uuid4()),
                                room_id,
                                cursor_day.isoformat(),
                                check_out.isoformat(),
                                rng.choice(statuses).value,
                                rng.choice(guests),
                                round(stay * rng.uniform(900.0, 2400.0), 2),
                                self._settings.default_currency,
                            )
                        )
                        cursor_day = check_out + timedelta(days=rng.randint(0, 3))

                cursor.executemany(
                    """
                    INSERT INTO Bookings (
                        id, room_id, check_in, check_out, status, guest_name, total_amount, currency
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    booking_entries,
                )
                conn.commit()
            logger.info("Demo seed completed with %s bookings", len(booking_entries))
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    @staticmethod
    def _row_to_room(row: sqlite3.Row) -> Room:
        return Room(
            room_id=str(row["id"]),
            name=str(row["name"]),
            total_units=int(row["total_units"]),
            is_active=bool(row["is_active"]),
            min_stay_nights=int(row["min_stay_nights"]),
            max_stay_nights=(
                int(row["max_stay_nights"]) if row["max_stay_nights"] is not None else None
            ),
        )

    @staticmethod
    def _row_to_booking(row: sqlite3.Row) -> Booking:
        return Booking(
            booking_id=str(row["id"]),
            room_id=str(row["room_id"]),
            check_in=date.fromisoformat(row["check_in"]),
            check_out=date.fromisoformat(row["check_out"]),
            status=BookingStatus(row["status"]),
            guest_name=str(row["guest_name"]),
            guest_email=row["guest_email"],
            guest_phone=row["guest_phone"],
            total_amount=float(row["total_amount"]),
            currency=str(row["currency"]),
        )

    def create_room(self, room: Room) -> Room:
        validate_room(room)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO Rooms (id, name, total_units, is_active, min_stay_nights, max_stay_nights)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        room.room_id,
                        room.name,
                        room.total_units,
                        int(room.is_active),
                        room.min_stay_nights,
                        room.max_stay_nights,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to create room: {exc}") from exc
        return room

    def deactivate_room(self, room_id: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("UPDATE Rooms SET is_active = 0 WHERE id = ?;", (room_id,))
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to deactivate room: {exc}") from exc

    def list_rooms(self, active_only: bool = False) -> list[Room]:
        query = "SELECT * FROM Rooms"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY name ASC, id ASC;"
        try:
            with self._connect() as conn:
                rows = conn.execute(query).fetchall()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to list rooms: {exc}") from exc
        return [self._row_to_room(row) for row in rows]

    def get_room(self, room_id: str) -> Optional[Room]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,)).fetchone()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to fetch room: {exc}") from exc
        return self._row_to_room(row) if row is not None else None

    def list_bookings(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        include_cancelled: bool = True,
    ) -> list[Booking]:
        """Bookings in stable order, optionally limited to those overlapping ``[start, end)``."""
        clauses: list[str] = []
        params: list[str] = []
        if end is not None:
            clauses.append("check_in < ?")
            params.append(end.isoformat())
        if start is not None:
            clauses.append("check_out > ?")
            params.append(start.isoformat())
        if not include_cancelled:
            clauses.append("status != ?")
            params.append(BookingStatus.CANCELLED.value)

        query = "SELECT * FROM Bookings"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY check_in ASC, id ASC;"
        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to list bookings: {exc}") from exc
        return [self._row_to_booking(row) for row in rows]

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM Bookings WHERE id = ?;", (booking_id,)).fetchone()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to fetch booking: {exc}") from exc
        return self._row_to_booking(row) if row is not None else None

    def count_bookings(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM Bookings;").fetchone()
        return int(row["count"])

    def _overlapping(
        self,
        conn: sqlite3.Connection,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_id: Optional[str],
    ) -> list[Booking]:
        rows = conn.execute(
            """
            SELECT * FROM Bookings
            WHERE room_id = ?
              AND status != ?
              AND check_in < ?
              AND check_out > ?
              AND id != ?
            ORDER BY check_in ASC, id ASC;
            """,
            (
                room_id,
                BookingStatus.CANCELLED.value,
                check_out.isoformat(),
                check_in.isoformat(),
                exclude_id or "",
            ),
        ).fetchall()
        return [self._row_to_booking(row) for row in rows]

    def create_booking(self, booking: Booking, enforce_free: bool = True) -> Booking:
        """Insert a booking; with ``enforce_free`` the overlap check and insert share one transaction."""
        stored = booking if booking.booking_id else _with_new_id(booking)
        try:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE;")
                if enforce_free and stored.status != BookingStatus.CANCELLED:
                    conflicts = self._overlapping(
                        conn, stored.room_id, stored.check_in, stored.check_out, None
                    )
                    if conflicts:
                        raise BookingOverlapError(conflicts)
                conn.execute(
                    """
                    INSERT INTO Bookings (
                        id, room_id, check_in, check_out, status, guest_name,
                        guest_email, guest_phone, total_amount, currency
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        stored.booking_id,
                        stored.room_id,
                        stored.check_in.isoformat(),
                        stored.check_out.isoformat(),
                        stored.status.value,
                        stored.guest_name,
                        stored.guest_email,
                        stored.guest_phone,
                        stored.total_amount,
                        stored.currency,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to create booking: {exc}") from exc
        return stored

    def update_booking_interval(
        self,
        booking_id: str,
        check_in: date,
        check_out: date,
        room_id: str,
    ) -> Booking:
        """Re-validate against stored bookings and write the new dates/room atomically."""
        try:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE;")
                current = conn.execute(
                    "SELECT status FROM Bookings WHERE id = ?;", (booking_id,)
                ).fetchone()
                if current is None:
                    raise RuntimeError(f"Booking {booking_id} does not exist")
                if current["status"] != BookingStatus.CANCELLED.value:
                    conflicts = self._overlapping(conn, room_id, check_in, check_out, booking_id)
                    if conflicts:
                        raise BookingOverlapError(conflicts)
                conn.execute(
                    """
                    UPDATE Bookings
                    SET check_in = ?, check_out = ?, room_id = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?;
                    """,
                    (check_in.isoformat(), check_out.isoformat(), room_id, booking_id),
                )
                row = conn.execute("SELECT * FROM Bookings WHERE id = ?;", (booking_id,)).fetchone()
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to update booking: {exc}") from exc
        return self._row_to_booking(row)

    def update_booking_status(self, booking_id: str, status: BookingStatus) -> Optional[Booking]:
        """Set a booking's status; returns ``None`` when the id is unknown.

        Reinstating a cancelled booking re-checks its room for overlaps first.
        """
        try:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE;")
                row = conn.execute("SELECT * FROM Bookings WHERE id = ?;", (booking_id,)).fetchone()
                if row is None:
                    return None
                current = self._row_to_booking(row)
                if current.is_cancelled and status != BookingStatus.CANCELLED:
                    conflicts = self._overlapping(
                        conn, current.room_id, current.check_in, current.check_out, booking_id
                    )
                    if conflicts:
                        raise BookingOverlapError(conflicts)
                conn.execute(
                    """
                    UPDATE Bookings SET status = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?;
                    """,
                    (status.value, booking_id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to update booking status: {exc}") from exc
        return replace(current, status=status)


def _with_new_id(booking: Booking) -> Booking:
    return replace(booking, booking_id=str(uuid4()))
