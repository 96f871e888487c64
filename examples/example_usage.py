"""Example: using the service layer without Flask.

Controllers are thin; the business rules live in the services wired by the container.
"""

import importlib

from config import get_settings_module

from opsdesk.container import build_container


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    print(container.attendance_service.history(1, limit=5))
    print(container.inventory_service.alerts())
    print(container.support_service.kpis())


if __name__ == "__main__":
    main()
