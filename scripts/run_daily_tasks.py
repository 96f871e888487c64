"""Create today's recurring task instances.

Meant for cron. Safe to run repeatedly: the per-day run marker makes later runs
no-ops unless ``--force`` is given.

    python scripts/run_daily_tasks.py [--date YYYY-MM-DD] [--force]
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
for path in (REPO_ROOT, REPO_ROOT / "src" / "opsdesk"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from dotenv import load_dotenv

from config import get_settings_module

from opsdesk.common.datetime_utils import parse_optional_date
from opsdesk.container import build_container


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--date", help="Target date (default: today)")
    parser.add_argument("--force", action="store_true", help="Run even if today's marker exists")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(db_config=dict(settings.DB_CONFIG))
    recurrence = container.recurrence_service
    if args.date:
        result = recurrence.create_instances_for_date(parse_optional_date(args.date, "Date"))
    else:
        result = recurrence.ensure_today(force=args.force)

    if result.skipped:
        print("Skipped: recurrence already ran today")
    else:
        print(
            f"OK: templates={result.templates_found} created={result.instances_created} "
            f"expired={result.expired_tasks}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
