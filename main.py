"""
Meetup Calendar — Entry Point.

`python main.py` creates (or migrates) the SQLite database at DATABASE_PATH
and reports what it holds. Surfaces import `create_services` and
`ActionService` directly.
"""

import logging

from src.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.adapters.service_factory import create_services

logger = logging.getLogger(__name__)


def main() -> None:
    services = create_services()
    logger.info("Database ready at %s", services.users.db_path)


if __name__ == "__main__":
    main()
