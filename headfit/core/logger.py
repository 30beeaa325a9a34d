"""
Logging setup - reads the `logging` section of tracking_config.json
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _logging_section() -> Dict[str, Any]:
    """`logging` section of the active config file, {} when there is none."""
    # config_file has no package imports, safe during package init
    from headfit.core.config_file import find_config_path, read_config_file

    try:
        config_path = find_config_path()
        if config_path is None:
            return {}
        section = read_config_file(config_path).get("logging")
    except (OSError, ValueError) as e:
        print(f"Warning: could not read logging config, using defaults: {e}")
        return {}
    return section if isinstance(section, dict) else {}


def _resolve_level(level: Optional[int], section: Dict[str, Any]) -> int:
    if level is not None:
        return level
    name = os.getenv("HEADFIT_LOG_LEVEL") or str(section.get('level', 'INFO'))
    return getattr(logging, name.upper(), logging.INFO)


def _file_handler(name: str, log_dir: str, rotation: str, max_size_mb: int) -> logging.Handler:
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    if rotation == 'size':
        return RotatingFileHandler(
            log_path / f'{name}.log',
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=5,
            encoding='utf-8',
        )
    stamp = datetime.now().strftime("%Y%m%d")
    return logging.FileHandler(log_path / f'{name}_{stamp}.log', encoding='utf-8')


def setup_logger(
    name: str = 'HeadFit',
    level: Optional[int] = None,
    log_dir: Optional[str] = None,
    enable_console: Optional[bool] = None,
    enable_file: Optional[bool] = None,
    max_size_mb: Optional[int] = None,
    file_rotation: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Priority: explicit arguments > HEADFIT_LOG_LEVEL (level only) >
    tracking_config.json `logging` section > defaults (INFO, console only).

    Args:
        name: logger name
        level: log level
        log_dir: directory for file logs
        enable_console / enable_file: handlers to attach
        max_size_mb: size limit when file_rotation == 'size'
        file_rotation: 'daily' or 'size'
    """
    section = _logging_section()
    level = _resolve_level(level, section)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Repeated calls only adjust the level
    if logger.handlers:
        return logger

    if enable_console is None:
        enable_console = bool(section.get('enable_console', True))
    if enable_file is None:
        enable_file = bool(section.get('enable_file', False))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler())
    if enable_file:
        handlers.append(_file_handler(
            name,
            log_dir or section.get('log_dir', 'logs'),
            file_rotation or section.get('file_rotation', 'daily'),
            int(max_size_mb or section.get('max_size_mb', 20)),
        ))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


# Default package logger
logger = setup_logger()
