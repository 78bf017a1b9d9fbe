# run_api.py
import logging

import uvicorn

from contest_hub.api.app import create_app
from contest_hub.config import Settings
from contest_hub.services.enrollment import cascade_policy


def main() -> None:
    settings = Settings()
    logging.basicConfig(level=settings.log_level)
    # Fail at startup, not on the first deletion.
    cascade_policy()
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
