"""HTTP API served with FastAPI."""


def main() -> None:
    """CLI entry point for the HTTP server."""
    import logging

    import uvicorn

    from helmet_check.api.app import create_app
    from helmet_check.config import LOG_FORMAT, LOG_LEVEL, SERVER_HOST, SERVER_PORT

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    uvicorn.run(create_app(), host=SERVER_HOST, port=SERVER_PORT)
