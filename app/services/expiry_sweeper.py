# app/services/expiry_sweeper.py
"""
Periodic expiry of stale PENDING requests.

List endpoints already run the sweep before answering; this loop covers the
case where nobody reads the lists for a while. Enabled when
settings.EXPIRY_SWEEP_INTERVAL_SECONDS > 0. The sweep is idempotent, so it
is safe to overlap with the check-on-read sweeps.
"""

import asyncio

from sqlalchemy.exc import SQLAlchemyError

from app.database import SessionLocal
from app.services.request_service import expire_stale_requests
from app.utils.logger import get_logger

logger = get_logger(__name__)


def sweep_once() -> int:
    db = SessionLocal()
    try:
        return expire_stale_requests(db)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[EXPIRY] Sweep failed: {e}", exc_info=True)
        return 0
    finally:
        db.close()


async def run_expiry_sweeper(interval_seconds: int):
    logger.info(f"[EXPIRY] Periodic sweep every {interval_seconds}s")
    while True:
        try:
            await asyncio.to_thread(sweep_once)
        except Exception as e:
            logger.error(f"[EXPIRY] Unexpected sweep error: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


def start_expiry_sweeper(interval_seconds: int) -> asyncio.Task:
    return asyncio.create_task(run_expiry_sweeper(interval_seconds))
