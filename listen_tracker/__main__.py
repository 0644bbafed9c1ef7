"""Entry point for the hourly listen processing job"""
import json
import logging
import os
import sys
import traceback

from listen_tracker.config import settings
from listen_tracker.processor import ListenProcessor
from listen_tracker.db import db
from listen_tracker.utils.json_encoder import DateTimeEncoder, json_dumps

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

def run() -> None:
    """Process today's listens for all users and write a summary."""
    try:
        # Initialize database connection
        db.init()

        # Log config (excluding sensitive data)
        logger.info("Using configuration:")
        safe_config = settings.model_dump(exclude={'SPOTIFY_CLIENT_SECRET', 'DB_PASSWORD', 'DATABASE_URL'})
        logger.info(json.dumps(safe_config, indent=2))

        processor = ListenProcessor(settings)
        response = processor.run()

        # Save results
        os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
        output_path = os.path.join(settings.OUTPUT_DIR, "results.json")
        with open(output_path, 'w') as f:
            json.dump(response.model_dump(), f, indent=2, cls=DateTimeEncoder)

        logger.info(f"Listen processing complete: {json_dumps(response.model_dump())}")

    except Exception as e:
        logger.error(f"Error during listen processing: {e}")
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.dispose()

if __name__ == "__main__":
    run()
