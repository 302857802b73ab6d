from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from composekit.config_store import deep_merge

DEFAULT_ENV_VAR = "PAGECOMPOSER_CONFIG"
DEFAULT_CONFIG_DIR = "config"
BASE_CONFIG_NAME = "config.yaml"
LOCAL_OVERLAY_NAME = "config.local.yaml"

ROOT_MARKERS: tuple[str, ...] = ("pyproject.toml", ".git")


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        if any((candidate / marker).exists() for marker in ROOT_MARKERS):
            return str(candidate)

    raise FileNotFoundError(
        f"No {' or '.join(ROOT_MARKERS)} found above {start_path}; "
        "pass an explicit config file instead"
    )


def load_yaml_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def _explicit_config_path(config_path: str | os.PathLike[str] | None, env_var: str | None) -> tuple[str | None, str]:
    if config_path is not None:
        raw, mode = str(config_path), "explicit"
    else:
        raw, mode = (os.environ.get(env_var, "") if env_var else ""), "env"
    raw = raw.strip()
    if not raw:
        return None, mode
    return os.path.abspath(os.path.expandvars(os.path.expanduser(raw))), mode


def load_config(
    config_path: str | os.PathLike[str] | None = None,
    *,
    config_dir: str | None = None,
    env_var: str | None = DEFAULT_ENV_VAR,
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the app config and describe where it came from.

    An explicit `config_path` (or, failing that, the `env_var` file) is loaded on
    its own. Otherwise `<config_dir>/config.yaml` is loaded and a sibling
    `config.local.yaml` is deep-merged over it. A relative `config_dir` is taken
    from the repo root found above `start_dir`.

    Returns:
        (cfg, meta) where meta has `mode`, `paths`, `env_var` and `repo_root`.
    """

    explicit, mode = _explicit_config_path(config_path, env_var)
    if explicit:
        meta = {"mode": mode, "paths": [explicit], "env_var": env_var, "repo_root": None}
        return load_yaml_mapping(explicit), meta

    repo_root: str | None = None
    directory = config_dir or DEFAULT_CONFIG_DIR
    if not os.path.isabs(directory):
        repo_root = find_repo_root(start_dir)
        directory = os.path.join(repo_root, directory)

    base_path = os.path.abspath(os.path.join(directory, BASE_CONFIG_NAME))
    if not os.path.isfile(base_path):
        raise FileNotFoundError(f"Missing base config file: {base_path}")

    cfg = load_yaml_mapping(base_path)
    paths = [base_path]

    overlay_path = os.path.abspath(os.path.join(directory, LOCAL_OVERLAY_NAME))
    if os.path.isfile(overlay_path):
        cfg = deep_merge(cfg, load_yaml_mapping(overlay_path), path="")
        paths.append(overlay_path)

    meta = {
        "mode": "base+local" if len(paths) > 1 else "base",
        "paths": paths,
        "env_var": env_var,
        "repo_root": repo_root,
    }
    return cfg, meta


def load_module_rules(path: str) -> dict[str, Any]:
    """Load the path-pattern -> {pre, post} module rules file."""

    rules = load_yaml_mapping(path)
    for pattern, rule in rules.items():
        if not isinstance(pattern, str) or not pattern:
            raise ValueError(f"Module rule keys must be non-empty strings (got {pattern!r}) in {path}")
        if rule is None:
            rules[pattern] = {}
        elif not isinstance(rule, Mapping):
            raise ValueError(
                f"Module rule {pattern!r} must be a mapping (type={type(rule).__name__}) in {path}"
            )
    return rules
