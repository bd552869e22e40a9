"""Export the semester schedule, or classroom usage for one slot, as JSON or table.

Standalone CLI script on top of the portal client. Restores the saved session
(or logs in with configured credentials), loads the schedule, and prints
courses or classrooms.

Run with: python scripts/export_schedule.py
Semester: python scripts/export_schedule.py --semester 2023-2024-1
Table:    python scripts/export_schedule.py --table
Teaching: python scripts/export_schedule.py --teaching-classrooms --day 3 --node 2
Empty:    python scripts/export_schedule.py --empty-classrooms --day 3 --node 2 --week 5

Credentials and base URL come from CAMPUS_* variables (see src/campus/config.py).

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.campus.api import PortalClient  # noqa: E402
from src.campus.config import get_config  # noqa: E402
from src.campus.gateway import HttpGateway  # noqa: E402
from src.campus.logging import get_logger, setup_logging_from_config  # noqa: E402
from src.campus.models import Classroom, Course, Result  # noqa: E402
from src.campus.preferences import open_preferences  # noqa: E402
from src.campus.session import SessionStore  # noqa: E402
from src.campus.sync import ScheduleSyncEngine  # noqa: E402

log = get_logger("export_schedule")


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Export schedule data from the campus portal as JSON or table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--semester",
        type=str,
        default=None,
        help="Semester to load, e.g. 2023-2024-1 (default: configured semester).",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Output a human-readable table instead of JSON.",
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--teaching-classrooms",
        action="store_true",
        help="Rooms in use by multi-room courses at --day/--node.",
    )
    mode_group.add_argument(
        "--empty-classrooms",
        action="store_true",
        help="Free rooms at --day/--node.",
    )

    parser.add_argument("--day", type=int, default=1, help="ISO weekday, 1 = Monday.")
    parser.add_argument(
        "--node", type=int, default=1, help="Paired period; 2 means periods 3-4."
    )
    parser.add_argument(
        "--week",
        type=int,
        default=None,
        help="Week to browse (default: current week of the latest semester).",
    )
    return parser.parse_args()


def _format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a pipe-separated table with padded columns."""
    if not rows:
        return "(no entries)"

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def _course_rows(courses: list[Course]) -> list[list[str]]:
    return [
        [
            c.course_name,
            c.teacher_name or "-",
            c.class_name or "-",
            c.classroom or "-",
        ]
        for c in courses
    ]


def _classroom_rows(rooms: list[Classroom]) -> list[list[str]]:
    return [
        [
            r.classroom_name,
            r.building_name or "-",
            "-" if r.capacity is None else str(r.capacity),
        ]
        for r in rooms
    ]


def _emit(result: Result, table: bool, headers: list[str], rows) -> None:
    if result.data is None:
        raise RuntimeError("No data available from the portal")
    if table:
        print(_format_table(headers, rows(result.data)))
    else:
        print(
            json.dumps(
                [item.model_dump(mode="json") for item in result.data],
                indent=2,
                ensure_ascii=False,
            )
        )


async def main(args: argparse.Namespace) -> None:
    config = get_config()
    setup_logging_from_config(config)

    preferences = open_preferences(config.state_dir, config.share_grace_seconds)
    session = SessionStore(preferences, config.login_url)
    gateway = HttpGateway(session, config)
    client = PortalClient(gateway, config)
    engine = ScheduleSyncEngine(client, preferences)

    if not session.is_logged_in:
        if not config.username or not config.password:
            raise RuntimeError("No saved session and no credentials configured")
        await client.login(config.username, config.password)

    await engine.load_schedule(args.semester)
    if args.week is not None:
        engine.set_browsed_week(args.week)

    state = engine.state
    log.info(
        "export_started",
        semester=state.browsed_semester,
        current_week=state.current_week,
        browsed_week=state.browsed_week,
    )

    if args.teaching_classrooms:
        await engine.load_teaching_classrooms(args.day, args.node)
        _emit(
            engine.state.teaching_classrooms,
            args.table,
            ["Room", "Course", "Teacher", "Class"],
            lambda courses: [
                [c.classroom or "-", c.course_name, c.teacher_name or "-", c.class_name or "-"]
                for c in courses
            ],
        )
    elif args.empty_classrooms:
        await engine.load_empty_classroom(args.day, args.node)
        _emit(
            engine.state.empty_classrooms,
            args.table,
            ["Room", "Building", "Capacity"],
            _classroom_rows,
        )
    else:
        _emit(
            engine.state.courses,
            args.table,
            ["Course", "Teacher", "Class", "Room"],
            _course_rows,
        )


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
