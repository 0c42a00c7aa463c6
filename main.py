"""
main.py - Main entry point for the Link Health API
"""

import logging

import uvicorn

import database
from api import app
from config import Config

# Set up logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def main():
    """Run the API server; the periodic sweep starts with it."""
    config = Config()
    logger.info("Starting Link Health API on %s:%s...", config.API_HOST, config.API_PORT)
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, log_config=None)


if __name__ == '__main__':
    # Create database tables if they don't exist
    try:
        database.create_tables()
        logger.info("Database tables created or already exist.")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")

    main()
