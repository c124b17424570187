"""Run the web surface with uvicorn: ``python -m commission_tracker``."""

import uvicorn

from commission_tracker.api import create_app
from commission_tracker.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    main()
