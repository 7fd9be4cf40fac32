from functools import lru_cache

from app.ai.config import load_ai_config
from app.ai.types import TextGenerator

from app.ai.providers.openai_provider import from_config


@lru_cache(maxsize=1)
def get_text_generator() -> TextGenerator:
    cfg = load_ai_config()

    if cfg.provider == "openai":
        return from_config(cfg)

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
