from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(scene_id)s | %(entity)s | %(component)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LOG_SCENE_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("log_scene_id", default=None)
LOG_ENTITY: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("log_entity", default=None)
LOG_COMPONENT: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("log_component", default=None)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.scene_id = LOG_SCENE_ID.get() or "-"
        record.entity = LOG_ENTITY.get() or "-"
        record.component = LOG_COMPONENT.get() or "-"
        return True


@contextmanager
def log_context(
    scene_id: Optional[str] = None,
    entity: Optional[str] = None,
    component: Optional[str] = None,
) -> Iterator[None]:
    tokens = []
    if scene_id is not None:
        tokens.append((LOG_SCENE_ID, LOG_SCENE_ID.set(scene_id)))
    if entity is not None:
        tokens.append((LOG_ENTITY, LOG_ENTITY.set(entity)))
    if component is not None:
        tokens.append((LOG_COMPONENT, LOG_COMPONENT.set(component)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def configure_logging(
    log_file: str = "logs/weaver.log",
    level: int = logging.INFO,
    enable_console: bool = False,
    force: bool = False,
) -> logging.Logger:
    root = logging.getLogger()
    if getattr(root, "_weaver_logging_configured", False) and not force:
        return root

    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for log_filter in list(root.filters):
            root.removeFilter(log_filter)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    # Filters on the root logger are skipped for records from child loggers,
    # so the context fields are attached per handler.
    file_handler.addFilter(ContextFilter())

    root.addHandler(file_handler)
    if enable_console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(ContextFilter())
        root.addHandler(stream_handler)

    root.addFilter(ContextFilter())
    root.setLevel(level)
    logging.captureWarnings(True)
    root._weaver_logging_configured = True
    return root
