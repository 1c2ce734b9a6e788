import logging
import sys
from typing import Optional


def setup_logging(log_level: Optional[str] = None, debug: bool = False) -> None:
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Set specific logger levels
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("replicate").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    if debug:
        logging.getLogger("app").setLevel(logging.DEBUG)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {logging.getLevelName(level)} level")
