"""Entry point for running the calculator as a module."""

import uvicorn

from .config import config
from .api.app import create_app


def main():
    """Run the neural calculator service."""
    app = create_app()

    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
