import logging
import sys
from app.config import settings, config

def setup_logging():
    """アプリケーションのロギング設定をセットアップする"""
    if settings.DEBUG or config.get("app", "DEBUG"):
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, str(config.get("app", "LOG_LEVEL")).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    logger = logging.getLogger("app")
    return logger

logger = setup_logging()
