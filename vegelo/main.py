import logging

import uvicorn

from vegelo.config import settings
from vegelo.db.sqlite import init_db


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    init_db()

    uvicorn.run("vegelo.web.main:app", host=settings.web_host, port=settings.web_port, log_config=None)


if __name__ == "__main__":
    main()
