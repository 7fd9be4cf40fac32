from contextlib import asynccontextmanager
import logging

from app.ai.config import load_ai_config, text_generation_enabled
from app.core.config import settings
from app.services.quiz_service import get_database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    db = get_database()
    db.init()
    logger.info("document_store_ready path=%s", db.path)

    if not text_generation_enabled(load_ai_config()):
        logger.warning("text_generation_disabled narratives and content will use fallbacks")
    if not settings.youtube_api_key:
        logger.warning("youtube_search_disabled videos will be empty")

    yield
    db.close()
