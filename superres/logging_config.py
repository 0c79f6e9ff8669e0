"""
Central logging setup for the super-resolution service and CLI.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, Union


def setup_logging(
	log_level: Union[int, str] = logging.INFO,
	log_dir: Optional[str] = None,
	log_prefix: str = "superres",
) -> logging.Logger:
	"""
	Configure the root logger with a console handler and, when log_dir is
	given, a rotating file handler.

	Args:
		log_level: level name or number (default: INFO)
		log_dir: directory for log files; no file logging when None
		log_prefix: file name prefix
	"""
	if isinstance(log_level, str):
		log_level = logging.getLevelName(log_level.upper())
		if not isinstance(log_level, int):
			log_level = logging.INFO

	logger = logging.getLogger()
	logger.setLevel(log_level)

	formatter = logging.Formatter(
		'%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
		datefmt='%Y-%m-%d %H:%M:%S'
	)

	console_handler = logging.StreamHandler(sys.stdout)
	console_handler.setLevel(log_level)
	console_handler.setFormatter(formatter)

	logger.handlers.clear()
	logger.addHandler(console_handler)

	if log_dir:
		os.makedirs(log_dir, exist_ok=True)
		timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
		log_file = os.path.join(log_dir, f"{log_prefix}_{timestamp}.log")
		file_handler = RotatingFileHandler(
			log_file,
			maxBytes=10 * 1024 * 1024,  # 10 MB
			backupCount=5
		)
		file_handler.setLevel(log_level)
		file_handler.setFormatter(formatter)
		logger.addHandler(file_handler)

	logging.getLogger('PIL').setLevel(logging.WARNING)

	return logger


def get_logger(name: str) -> logging.Logger:
	return logging.getLogger(name)
