# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Utilities to configure and retrieve simulation loggers.

Every component logs under the ``sim`` namespace (``sim.round``,
``sim.exchange``, ``sim.movement.group_walk``, ...). The ``logging``
section of the JSON config decides where the records go and how verbose
each component is.
"""
from __future__ import annotations

import csv
import hashlib
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_NAMESPACE = "sim"
HASH_LENGTH = 12
LOG_DIRNAME = "logs"
CONFIGS_SUBDIR = "configs"
HASH_MAP_FILENAME = "logs_configs_mapping.csv"

def _coerce_level(value: Any, fallback: int = logging.INFO) -> int:
    """
    Return a valid logging level from either a string or an integer.
    Unknown names fall back to `fallback`.
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.upper())
        if isinstance(level, int):
            return level
    return fallback

def config_hash(config_path: Optional[str | Path]) -> Optional[str]:
    """Short sha256 digest of the config file, None when it cannot be read."""
    if not config_path:
        return None
    try:
        data = Path(config_path).expanduser().resolve(strict=True).read_bytes()
    except (FileNotFoundError, IsADirectoryError):
        return None
    return hashlib.sha256(data).hexdigest()[:HASH_LENGTH]

def configure_logging(
    settings: Optional[Dict[str, Any]] = None,
    config_path: Optional[str | Path] = None,
    project_root: Optional[str | Path] = None,
) -> Optional[Path]:
    """
    Configure Python logging from the ``logging`` section of the config.

    Parameters
    ----------
    settings:
        Supported keys:
        - enabled (bool): write a log file under ``<project_root>/logs`` (default: False)
        - level (str|int): console level (default: INFO when enabled, WARNING otherwise)
        - file_level (str|int): level of the log file (default: level)
        - to_console (bool): echo logs to stderr (default: True)
        - components (dict): per-component levels, e.g. ``{"round": "DEBUG"}``
    config_path:
        Configuration file of the simulation. Its hash names the log file
        and a copy is stored next to the logs.
    project_root:
        Repository root, used to derive the logs directory.

    Returns the path of the log file, or None when file logging is off.
    """
    settings = settings or {}
    enabled = bool(settings.get("enabled", False))
    console_level = _coerce_level(settings.get("level"), logging.INFO if enabled else logging.WARNING)
    file_level = _coerce_level(settings.get("file_level"), console_level)

    handlers: list[logging.Handler] = []
    if settings.get("to_console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        handlers.append(console_handler)

    log_path = None
    if enabled:
        log_path = _prepare_log_file(config_path, project_root)
        file_handler = logging.FileHandler(log_path, encoding="utf-8", delay=True)
        file_handler.setLevel(file_level)
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    effective_level = min(handler.level or console_level for handler in handlers)
    logging.basicConfig(level=effective_level, handlers=handlers, force=True)
    logging.getLogger(LOG_NAMESPACE).setLevel(effective_level)
    for component, level in (settings.get("components") or {}).items():
        get_logger(component).setLevel(_coerce_level(level, effective_level))
    return log_path

def _prepare_log_file(
    config_path: Optional[str | Path],
    project_root: Optional[str | Path],
) -> Path:
    """
    Return the log file path ``<timestamp>[_<hash>].log``.
    The config is copied under ``logs/configs`` and its hash recorded in the mapping CSV.
    """
    root = Path(project_root).resolve() if project_root else Path(__file__).resolve().parents[1]
    log_dir = root / LOG_DIRNAME
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    cfg_hash = config_hash(config_path)
    stem = f"{timestamp}_{cfg_hash}" if cfg_hash else timestamp
    log_path = log_dir / f"{stem}.log"

    if cfg_hash:
        cfg_path_obj = Path(config_path).expanduser().resolve()
        configs_dir = log_dir / CONFIGS_SUBDIR
        configs_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(cfg_path_obj, configs_dir / f"{stem}_{cfg_path_obj.name}")
        _update_hash_mapping(log_dir / HASH_MAP_FILENAME, cfg_hash, log_path, root)
    return log_path

def _update_hash_mapping(mapping_file: Path, cfg_hash: str, log_path: Path, project_root: Path) -> None:
    """Append a row to the CSV file that maps config hashes to log files."""
    need_header = not mapping_file.exists()
    try:
        rel_path = f"{project_root.name}/{log_path.relative_to(project_root).as_posix()}"
    except ValueError:
        rel_path = str(log_path.resolve())
    with mapping_file.open("a", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        if need_header:
            writer.writerow(["hash", "log_path"])
        writer.writerow([cfg_hash, rel_path])

def get_logger(component: str) -> logging.Logger:
    """
    Return a namespaced logger for the given component.
    """
    component = component.strip(".")
    if component.startswith(LOG_NAMESPACE + ".") or component == LOG_NAMESPACE:
        return logging.getLogger(component)
    name = f"{LOG_NAMESPACE}.{component}" if component else LOG_NAMESPACE
    return logging.getLogger(name)
