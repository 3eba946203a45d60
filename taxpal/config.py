import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        api_base_url: Optional[str],
        api_timeout_secs: float,
        data_dir: Path,
        poll_interval_secs: float,
        log_level: str,
    ) -> None:
        self.api_base_url = api_base_url
        self.api_timeout_secs = api_timeout_secs
        self.data_dir = data_dir
        self.poll_interval_secs = poll_interval_secs
        self.log_level = log_level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    api_base_url = os.getenv("TAXPAL_API_BASE_URL", "").strip() or None
    return Settings(
        api_base_url=api_base_url,
        api_timeout_secs=float(os.getenv("TAXPAL_API_TIMEOUT_SECS", "5")),
        data_dir=Path(os.getenv("TAXPAL_DATA_DIR", "./data")).resolve(),
        poll_interval_secs=float(os.getenv("TAXPAL_POLL_INTERVAL_SECS", "2")),
        log_level=os.getenv("TAXPAL_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
