"""Entry point for running the contentgraph server."""

import uvicorn

from contentgraph.backend.app import create_app
from contentgraph.backend.config import get_config


def main() -> None:
    """Run the server with uvicorn."""
    config = get_config()

    app = create_app()

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
