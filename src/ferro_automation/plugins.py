"""Loading third-party modules.

A plugin is a Python file or importable module exposing
``register_modules(registry)``; it adds module classes to the registry under
the type names playbooks use.
"""

from __future__ import annotations

from pathlib import Path
from types import ModuleType
from typing import Optional
import importlib
import importlib.util
import logging

from . import modules
from .config import FerroConfig

logger = logging.getLogger(__name__)


def load_plugins(cfg: FerroConfig, registry: Optional[dict] = None) -> list[str]:
    """Import configured plugins and let them register modules.

    Returns the names of the plugins that were loaded.
    """

    if registry is None:
        registry = modules.MODULE_REGISTRY
    loaded: list[str] = []
    for directory in cfg.plugin_dirs:
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning("Plugin directory %s does not exist", directory)
            continue
        for path in sorted(directory.glob("*.py")):
            plugin = _import_file(path)
            _register(plugin, registry)
            loaded.append(str(path))
    for name in cfg.plugin_modules:
        plugin = importlib.import_module(name)
        _register(plugin, registry)
        loaded.append(name)
    return loaded


def _import_file(path: Path) -> ModuleType:
    module_name = f"ferro_plugin_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load plugin {path}")
    plugin = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(plugin)
    return plugin


def _register(plugin: ModuleType, registry: dict) -> None:
    register = getattr(plugin, "register_modules", None)
    if register is None:
        logger.debug("plugin=%s has no register_modules hook", plugin.__name__)
        return
    register(registry)
    logger.debug("plugin=%s registered", plugin.__name__)
