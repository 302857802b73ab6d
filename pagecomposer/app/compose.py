from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime
from typing import Any, Mapping

from composekit.config_store import ConfigStore
from composekit.engine import ComposedOutput, Composer
from pagecomposer.foundation.config_io import load_config, load_module_rules
from pagecomposer.framework.config import AppConfig
from pagecomposer.framework.routing import Router
from pagecomposer.units.registry import get_unit_registry
from pagecomposer.units.static_page import BASE_DIR_KEY


def configure_stdio_utf8():
    """Force stdout/stderr to UTF-8 so composed documents never crash on Windows consoles."""
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        # If reconfigure is unavailable, continue with defaults.
        pass


def generate_request_id() -> str:
    return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def setup_operational_logger(log_dir: str | None, request_id: str):
    """
    Configure a logger for one composition request.
    Logs go to stderr and, when `log_dir` is set, to a UTF-8 file under it.
    """

    logger_name = f"pagecomposer.{request_id}"
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{request_id}_oplog.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    logger.propagate = False

    logger.info("Operational logging initialized for request %s", request_id)
    if log_file:
        logger.debug("Operational log file: %s", log_file)

    return logger, log_file


def close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
    logger.handlers.clear()


def config_base_dir(config_meta: Mapping[str, Any] | None) -> str:
    """Repo root the config was discovered in; the working directory for an explicit file."""

    return os.path.abspath((config_meta or {}).get("repo_root") or os.getcwd())


def resolve_config_path(path: str | None, config_meta: Mapping[str, Any] | None) -> str | None:
    if path is None or os.path.isabs(path):
        return path
    return os.path.abspath(os.path.join(config_base_dir(config_meta), path))


def build_composer(cfg: AppConfig, *, logger: logging.Logger | None = None) -> Composer:
    registry = get_unit_registry(cfg.extra_unit_modules)
    store = ConfigStore()
    for unit_id, values in cfg.unit_config.items():
        store.merge_namespace(unit_id, values)
    return Composer(registry, config=store, logger=logger)


def compose_page(
    cfg_dict: Mapping[str, Any],
    path: str,
    *,
    request_id: str | None = None,
    config_meta: dict[str, Any] | None = None,
    logger: logging.Logger | None = None,
) -> ComposedOutput:
    cfg, cfg_warnings = AppConfig.from_dict(cfg_dict)
    rules_path = resolve_config_path(cfg.rules_path, config_meta)
    log_dir = resolve_config_path(cfg.log_dir, config_meta)

    request_id = request_id or generate_request_id()
    owns_logger = logger is None
    if logger is None:
        logger, _log_file = setup_operational_logger(log_dir, request_id)

    try:
        if config_meta and config_meta.get("paths"):
            logger.info("Loaded config (%s): %s", config_meta.get("mode"), ", ".join(config_meta["paths"]))
        for warning in cfg_warnings:
            logger.warning("%s", warning)

        rules = load_module_rules(rules_path) if rules_path else {}
        route = Router(cfg.routes, cfg.fallback_unit).parse(path)
        logger.info("Routed %r to %s", path, route.unit_id)

        composer = build_composer(cfg, logger=logger)
        if route.parameters:
            composer.config.set("request.parameters", dict(route.parameters))
        composer.config.set("request.path", path)
        composer.config.set(BASE_DIR_KEY, config_base_dir(config_meta))

        return composer.compose(route.unit_id, path.strip("/"), rules)
    except Exception:
        logger.exception("Composition failed for %r", path)
        raise
    finally:
        if owns_logger:
            close_logger(logger)


def main(path: str, *, config_path: str | None = None) -> ComposedOutput:
    configure_stdio_utf8()
    cfg_dict, cfg_meta = load_config(config_path=config_path)
    return compose_page(cfg_dict, path, config_meta=cfg_meta)
