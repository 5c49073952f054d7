"""
Entry point for the resource CRUD API.
"""
import argparse
import logging

from app.config.database import DatabasePool
from app.config.logger import setup_logging
from app.config.settings import get_config
from app.services.resource_repository import ResourceRepository
from app.services.resource_schema import RESOURCES


def init_db() -> None:
    """Create the table of every registered resource."""
    logger = logging.getLogger(__name__)
    db = DatabasePool()
    try:
        for schema in RESOURCES:
            ResourceRepository(db, schema).create_table()
    finally:
        db.close_all()
    logger.info(f"Initialized {len(RESOURCES)} tables")


def main():
    """
    Main entry point for the resource API.
    """
    # Parse command line arguments
    parser = argparse.ArgumentParser(description="CRUD API for fashion and pokemon records")
    parser.add_argument("--init-db", action="store_true", help="Create the resource tables if they do not exist")
    parser.add_argument("--serve", action="store_true", help="Run HTTP API server")
    parser.add_argument("--host", type=str, help="Host to bind the server (default: from ENV or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to bind the server (default: from ENV or 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--workers", type=int, help="Number of worker processes (default: from ENV or 1)")
    args = parser.parse_args()

    # Setup logging
    setup_logging()

    logger = logging.getLogger(__name__)

    if args.init_db:
        logger.info("Creating resource tables")
        init_db()

    if args.serve:
        import uvicorn

        config = get_config()
        host = args.host or config.get("api_host", "0.0.0.0")
        port = args.port or config.get("api_port", 8000)
        workers = args.workers or config.get("api_workers", 1)
        is_dev = config.get("environment", "development") == "development"

        # Enable reload only in development or if explicitly requested
        reload = args.reload or (is_dev and not args.workers)

        logger.info(f"Starting API server on http://{host}:{port}")
        logger.info(f"Environment: {config.get('environment', 'development')}")
        logger.info(f"Workers: {workers if not reload else 1} (reload: {reload})")

        uvicorn.run(
            "app.api.routes:app",
            host=host,
            port=port,
            reload=reload,
            workers=1 if reload else workers,  # Workers don't work with reload
            log_level=config.get("log_level", "info").lower()
        )
        return

    if not args.init_db:
        parser.print_help()


if __name__ == "__main__":
    main()
