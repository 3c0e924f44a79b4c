import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from weaver.config.config import config
from weaver.utils.logging_setup import configure_logging


class ServiceResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    content: Optional[Any] = None


def setup_logger(name: str) -> logging.Logger:
    configure_logging(log_file=config["log_file"], level=str(config.get("log_level", "INFO")).upper())
    return logging.getLogger(name)
