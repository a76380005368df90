"""Repository layer responsible for all database access."""

from __future__ import annotations

import random
import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from labenergy.domain.models import (
    APPOINTMENT_STATUSES,
    CANCELLED_STATUS,
    Appointment,
    Laboratory,
    Machine,
    PreferredHour,
)
from labenergy.domain.time_ranges import InvalidTimeFormatError, format_minutes, to_minutes
from labenergy.utils.config import Settings, get_settings
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)


_SEED_LABORATORIES = (
    ("Physics Laboratory", "Building A - Floor 2"),
    ("Chemistry Laboratory", "Building B - Floor 1"),
    ("Computing Laboratory", "Building C - Floor 3"),
)

# (laboratory index, name, kW)
_SEED_MACHINES = (
    (0, "Electron Microscope", 2.5),
    (0, "Spectrometer", 1.8),
    (1, "Chromatograph", 3.2),
    (1, "Analytical Balance", 0.5),
    (2, "Compute Server", 4.0),
    (2, "Workstation", 0.8),
)

# (day_of_week, start, end, kW); Sunday == 0
_SEED_PREFERRED_HOURS = (
    (1, "08:00", "10:00", 1.5),
    (1, "14:00", "16:00", 3.0),
    (2, "09:00", "11:00", 2.0),
    (3, "10:00", "12:00", 3.5),
    (4, "08:00", "09:30", 1.0),
    (5, "13:00", "15:00", 2.5),
)

_SEED_USERS = (
    ("Maria Garcia", "maria.garcia@university.edu", "Biological sample analysis"),
    ("Carlos Lopez", "carlos.lopez@university.edu", "Organic compound separation"),
    ("Ana Torres", "ana.torres@university.edu", "Simulation batch run"),
)


class DataRepository:
    """Encapsulates SQLite access so scheduling logic stays storage-agnostic."""

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
                    CREATE TABLE IF NOT EXISTS Laboratories (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        location TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Machines (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        laboratory_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        power_consumption REAL NOT NULL CHECK (power_consumption >= 0),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (id, laboratory_id),
                        FOREIGN KEY (laboratory_id) REFERENCES Laboratories(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS PreferredHours (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        power_consumption REAL NOT NULL CHECK (power_consumption >= 0),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (start_time < end_time)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Appointments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        laboratory_id INTEGER NOT NULL,
                        user_name TEXT NOT NULL,
                        user_email TEXT NOT NULL,
                        appointment_date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        purpose TEXT NOT NULL,
                        status TEXT NOT NULL
                            CHECK (status IN ('pending', 'confirmed', 'cancelled')),
                        power_consumption REAL NOT NULL DEFAULT 0,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (start_time < end_time),
                        UNIQUE (id, laboratory_id),
                        FOREIGN KEY (laboratory_id) REFERENCES Laboratories(id)
                    );
                    """
                )

                # laboratory_id is carried on the join row so both composite
                # keys pin the machine and the appointment to the same lab.
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS AppointmentMachines (
                        appointment_id INTEGER NOT NULL,
                        machine_id INTEGER NOT NULL,
                        laboratory_id INTEGER NOT NULL,
                        PRIMARY KEY (appointment_id, machine_id),
                        FOREIGN KEY (appointment_id, laboratory_id)
                            REFERENCES Appointments(id, laboratory_id) ON DELETE CASCADE,
                        FOREIGN KEY (machine_id, laboratory_id)
                            REFERENCES Machines(id, laboratory_id) ON DELETE RESTRICT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_machines_lab
                    ON Machines(laboratory_id);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_appointments_lab_date
                    ON Appointments(laboratory_id, appointment_date);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_preferred_hours_day
                    ON PreferredHours(day_of_week, start_time);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> None:
        """Seed deterministic demo reference data and bookings only when empty."""
        rng = random.Random(self._settings.synthetic_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Laboratories;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Synthetic data already present; skipping seed")
                    return

                laboratory_ids: list[int] = []
                for name, location in _SEED_LABORATORIES:
                    cursor.execute(
                        "INSERT INTO Laboratories (name, location) VALUES (?, ?);",
                        (name, location),
                    )
                    laboratory_ids.append(int(cursor.lastrowid))

                machines_by_lab: dict[int, list[tuple[int, float]]] = {
                    laboratory_id: [] for laboratory_id in laboratory_ids
                }
                for lab_index, name, power in _SEED_MACHINES:
                    laboratory_id = laboratory_ids[lab_index]
                    cursor.execute(
                        """
                        INSERT INTO Machines (laboratory_id, name, power_consumption)
                        VALUES (?, ?, ?);
                        """,
                        (laboratory_id, name, power),
                    )
                    machines_by_lab[laboratory_id].append((int(cursor.lastrowid), power))

                cursor.executemany(
                    """
                    INSERT INTO PreferredHours (day_of_week, start_time, end_time, power_consumption)
                    VALUES (?, ?, ?, ?);
                    """,
                    _SEED_PREFERRED_HOURS,
                )

                appointment_count = 0
                start_day = datetime.now(timezone.utc).date()
                for offset in range(self._settings.synthetic_seed_days):
                    current_day = start_day + timedelta(days=offset)
                    if current_day.weekday() >= 5:
                        continue
                    for laboratory_id in laboratory_ids:
                        if rng.random() < 0.4:
                            continue
                        machine_id, power = rng.choice(machines_by_lab[laboratory_id])
                        start_minutes = rng.choice(range(8 * 60, 16 * 60 + 1, 30))
                        length_minutes = rng.choice((60, 90, 120))
                        user_name, user_email, purpose = rng.choice(_SEED_USERS)
                        status = "confirmed" if rng.random() < 0.7 else "pending"
                        cursor.execute(
                            """
                            INSERT INTO Appointments (
                                laboratory_id,
                                user_name,
                                user_email,
                                appointment_date,
                                start_time,
                                end_time,
                                purpose,
                                status,
                                power_consumption
                            )
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                            """,
                            (
                                laboratory_id,
                                user_name,
                                user_email,
                                current_day.isoformat(),
                                format_minutes(start_minutes),
                                format_minutes(min(start_minutes + length_minutes, 18 * 60)),
                                purpose,
                                status,
                                power,
                            ),
                        )
                        cursor.execute(
                            """
                            INSERT INTO AppointmentMachines (appointment_id, machine_id, laboratory_id)
                            VALUES (?, ?, ?);
                            """,
                            (int(cursor.lastrowid), machine_id, laboratory_id),
                        )
                        appointment_count += 1
                conn.commit()
            logger.info(
                "Synthetic seed completed | laboratories=%s | machines=%s | appointments=%s",
                len(laboratory_ids),
                len(_SEED_MACHINES),
                appointment_count,
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic data seeding failed: {exc}") from exc

    def list_laboratories(self) -> list[Laboratory]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, name, location FROM Laboratories ORDER BY id ASC;")
            return [
                Laboratory(
                    laboratory_id=int(row["id"]),
                    name=str(row["name"]),
                    location=str(row["location"]),
                )
                for row in cursor.fetchall()
            ]

    def get_laboratory(self, laboratory_id: int) -> Optional[Laboratory]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, location FROM Laboratories WHERE id = ?;",
                (laboratory_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return Laboratory(
                laboratory_id=int(row["id"]),
                name=str(row["name"]),
                location=str(row["location"]),
            )

    def list_machines(self, laboratory_id: Optional[int] = None) -> list[Machine]:
        """Return machines, optionally restricted to one laboratory."""
        query = "SELECT id, laboratory_id, name, power_consumption FROM Machines"
        params: tuple[int, ...] = ()
        if laboratory_id is not None:
            query += " WHERE laboratory_id = ?"
            params = (laboratory_id,)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query + " ORDER BY id ASC;", params)
            return [self._machine_from_row(row) for row in cursor.fetchall()]

    def get_machines(self, machine_ids: Sequence[int]) -> list[Machine]:
        if not machine_ids:
            return []
        placeholders = ",".join("?" for _ in machine_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT id, laboratory_id, name, power_consumption
                FROM Machines
                WHERE id IN ({placeholders})
                ORDER BY id ASC;
                """,
                tuple(machine_ids),
            )
            return [self._machine_from_row(row) for row in cursor.fetchall()]

    def list_preferred_hours(self, day_of_week: int) -> list[PreferredHour]:
        """Return facility-wide tariff windows for a weekday (Sunday == 0)."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, day_of_week, start_time, end_time, power_consumption
                FROM PreferredHours
                WHERE day_of_week = ?
                ORDER BY start_time ASC, id ASC;
                """,
                (day_of_week,),
            )
            return [
                PreferredHour(
                    preferred_hour_id=int(row["id"]),
                    day_of_week=int(row["day_of_week"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                    power_consumption=float(row["power_consumption"]),
                )
                for row in cursor.fetchall()
            ]

    def list_appointments(
        self,
        *,
        start_date: str,
        end_date: str,
        laboratory_id: Optional[int] = None,
        exclude_statuses: Iterable[str] = (CANCELLED_STATUS,),
        machine_ids: Optional[Sequence[int]] = None,
    ) -> list[Appointment]:
        """Return appointments dated within [start_date, end_date] with linked machines.

        When ``machine_ids`` is given, only appointments linked to at least one
        of those machines are returned.
        """
        clauses = ["appointment_date >= ?", "appointment_date <= ?"]
        params: list[object] = [start_date, end_date]
        if laboratory_id is not None:
            clauses.append("laboratory_id = ?")
            params.append(laboratory_id)
        excluded = [status.lower() for status in exclude_statuses]
        if excluded:
            clauses.append(f"LOWER(status) NOT IN ({','.join('?' for _ in excluded)})")
            params.extend(excluded)
        if machine_ids is not None:
            if not machine_ids:
                return []
            clauses.append(
                "id IN (SELECT appointment_id FROM AppointmentMachines "
                f"WHERE machine_id IN ({','.join('?' for _ in machine_ids)}))"
            )
            params.extend(machine_ids)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT
                    id,
                    laboratory_id,
                    user_name,
                    user_email,
                    appointment_date,
                    start_time,
                    end_time,
                    purpose,
                    status,
                    power_consumption,
                    created_at
                FROM Appointments
                WHERE {' AND '.join(clauses)}
                ORDER BY appointment_date ASC, start_time ASC, id ASC;
                """,
                tuple(params),
            )
            rows = cursor.fetchall()
            if not rows:
                return []

            appointment_ids = [int(row["id"]) for row in rows]
            cursor.execute(
                f"""
                SELECT appointment_id, machine_id
                FROM AppointmentMachines
                WHERE appointment_id IN ({','.join('?' for _ in appointment_ids)})
                ORDER BY appointment_id ASC, machine_id ASC;
                """,
                tuple(appointment_ids),
            )
            links: dict[int, list[int]] = {appointment_id: [] for appointment_id in appointment_ids}
            for link in cursor.fetchall():
                links[int(link["appointment_id"])].append(int(link["machine_id"]))

            return [
                Appointment(
                    appointment_id=int(row["id"]),
                    laboratory_id=int(row["laboratory_id"]),
                    appointment_date=str(row["appointment_date"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                    power_consumption=float(row["power_consumption"] or 0.0),
                    status=str(row["status"]),
                    machine_ids=tuple(links[int(row["id"])]),
                    user_name=str(row["user_name"]),
                    user_email=str(row["user_email"]),
                    purpose=str(row["purpose"]),
                    created_at=str(row["created_at"]),
                )
                for row in rows
            ]

    def create_laboratory(self, name: str, location: str) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Laboratories (name, location) VALUES (?, ?);",
                (name, location),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_machine(self, laboratory_id: int, name: str, power_consumption: float) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO Machines (laboratory_id, name, power_consumption)
                    VALUES (?, ?, ?);
                    """,
                    (laboratory_id, name, power_consumption),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Machine rejected by store: {exc}") from exc

    def create_preferred_hour(
        self,
        day_of_week: int,
        start_time: str,
        end_time: str,
        power_consumption: float,
    ) -> int:
        _validate_time_range(start_time, end_time)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO PreferredHours (day_of_week, start_time, end_time, power_consumption)
                    VALUES (?, ?, ?, ?);
                    """,
                    (day_of_week, start_time, end_time, power_consumption),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Preferred hour rejected by store: {exc}") from exc

    def create_appointment(
        self,
        *,
        laboratory_id: int,
        appointment_date: str,
        start_time: str,
        end_time: str,
        machine_ids: Sequence[int],
        user_name: str = "",
        user_email: str = "",
        purpose: str = "",
        status: str = "pending",
        power_consumption: Optional[float] = None,
    ) -> int:
        """Insert an appointment with its machine links and return the created id.

        Every machine must belong to ``laboratory_id``. When no power value is
        given the appointment inherits the sum of its machines' nameplate power.
        """
        _validate_time_range(start_time, end_time)
        date.fromisoformat(appointment_date)
        if status not in APPOINTMENT_STATUSES:
            raise ValueError(f"status must be one of {APPOINTMENT_STATUSES}")
        unique_machine_ids = sorted(set(machine_ids))

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                machine_power = 0.0
                if unique_machine_ids:
                    placeholders = ",".join("?" for _ in unique_machine_ids)
                    cursor.execute(
                        f"""
                        SELECT id, power_consumption
                        FROM Machines
                        WHERE laboratory_id = ? AND id IN ({placeholders});
                        """,
                        (laboratory_id, *unique_machine_ids),
                    )
                    rows = cursor.fetchall()
                    if len(rows) != len(unique_machine_ids):
                        found = {int(row["id"]) for row in rows}
                        foreign = [mid for mid in unique_machine_ids if mid not in found]
                        raise ValueError(
                            f"machine_ids {foreign} do not belong to laboratory_id={laboratory_id}"
                        )
                    machine_power = sum(float(row["power_consumption"]) for row in rows)

                cursor.execute(
                    """
                    INSERT INTO Appointments (
                        laboratory_id,
                        user_name,
                        user_email,
                        appointment_date,
                        start_time,
                        end_time,
                        purpose,
                        status,
                        power_consumption
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        laboratory_id,
                        user_name,
                        user_email,
                        appointment_date,
                        start_time,
                        end_time,
                        purpose,
                        status,
                        machine_power if power_consumption is None else power_consumption,
                    ),
                )
                appointment_id = int(cursor.lastrowid)
                cursor.executemany(
                    """
                    INSERT INTO AppointmentMachines (appointment_id, machine_id, laboratory_id)
                    VALUES (?, ?, ?);
                    """,
                    [(appointment_id, machine_id, laboratory_id) for machine_id in unique_machine_ids],
                )
                conn.commit()
                return appointment_id
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Appointment rejected by store: {exc}") from exc

    def update_appointment_status(self, appointment_id: int, status: str) -> None:
        """Transition lifecycle status; cancelling is the only way to retire a booking."""
        if status not in APPOINTMENT_STATUSES:
            raise ValueError(f"status must be one of {APPOINTMENT_STATUSES}")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE Appointments SET status = ? WHERE id = ?;",
                (status, appointment_id),
            )
            conn.commit()

    def count_appointments(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Appointments;")
            return int(cursor.fetchone()["count"])

    @staticmethod
    def _machine_from_row(row: sqlite3.Row) -> Machine:
        return Machine(
            machine_id=int(row["id"]),
            laboratory_id=int(row["laboratory_id"]),
            name=str(row["name"]),
            power_consumption=float(row["power_consumption"]),
        )


def _validate_time_range(start_time: str, end_time: str) -> None:
    try:
        start_minutes = to_minutes(start_time)
        end_minutes = to_minutes(end_time)
    except InvalidTimeFormatError as exc:
        raise ValueError(str(exc)) from exc
    if start_minutes >= end_minutes:
        raise ValueError("start_time must be earlier than end_time")
