from __future__ import annotations
import logging
from typing import Optional

from .settings import settings

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_HANDLER_NAME = "storyengine"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
	"""Attach a single stream handler to the ``storyengine`` logger tree."""
	logger = logging.getLogger("storyengine")
	resolved = (level or settings.log_level or "INFO").upper()
	logger.setLevel(getattr(logging, resolved, logging.INFO))
	if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
		handler = logging.StreamHandler()
		handler.setFormatter(logging.Formatter(_FORMAT))
		handler.set_name(_HANDLER_NAME)
		logger.addHandler(handler)
	return logger
