#!/usr/bin/env python3
"""Validate local booking calendar environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.repository.data_repository import DataRepository
from backend.services.calendar_service import CalendarService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="calendar-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("numpy", "numpy"),
        ("pandas", "pandas"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import version

    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            _ = version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "calendar_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo data seeding
        try:
            repository.seed_demo_data()
            room_count = len(repository.list_rooms())
            booking_count = repository.count_bookings()
            if room_count != 5 or booking_count == 0:
                raise RuntimeError(f"expected 5 rooms and some bookings, got {room_count}/{booking_count}")
            ok, line = _print_result(
                "Demo data seeding",
                True,
                f": {room_count} rooms, {booking_count} bookings",
            )
        except Exception as exc:
            ok, line = _print_result("Demo data seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        service = CalendarService(repository=repository, settings=validation_settings)
        window_start = date.today() - timedelta(days=7)

        # CHECK 5: Timeline rendering
        try:
            view = service.timeline(window_start)
            placements = sum(len(row.placements) for row in view.rows)
            ok, line = _print_result(
                "Timeline rendering",
                True,
                f": {len(view.rows)} rows, {placements} blocks, occupancy={view.occupancy_percentage}%",
            )
        except Exception as exc:
            ok, line = _print_result("Timeline rendering", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: Drag resolution round trip
        try:
            bookings = repository.list_bookings(include_cancelled=False)
            if not bookings:
                raise RuntimeError("no active bookings to drag")
            outcome = service.drag_booking(bookings[0].booking_id, 0)
            if not outcome.result.accepted:
                raise RuntimeError(f"zero-day drag rejected: {outcome.result.reason}")
            ok, line = _print_result("Drag resolution", True)
        except Exception as exc:
            ok, line = _print_result("Drag resolution", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Booking Calendar Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
