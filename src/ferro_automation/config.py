from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


DEFAULT_CONFIG = Path("/etc/ferro/main.conf")
DEFAULT_PLAYBOOK = Path("/etc/ferro/playbook.toml")
OUTPUT_FORMATS = ("json", "text")


@dataclass
class FerroConfig:
    playbook: Path = DEFAULT_PLAYBOOK
    aws_region: Optional[str] = None
    aws_profile: Optional[str] = None
    output: str = "json"
    plugin_dirs: list[Path] = field(default_factory=list)
    plugin_modules: list[str] = field(default_factory=list)
    module_defaults: dict[str, dict[str, Any]] = field(default_factory=dict)


def load_config(path: Path) -> FerroConfig:
    if not path.exists():
        return FerroConfig()
    data = tomllib.loads(path.read_text())
    defaults = data.get("defaults", {})
    playbook = defaults.get("playbook", DEFAULT_PLAYBOOK)
    aws_region = defaults.get("aws_region")
    aws_profile = defaults.get("aws_profile")
    output = str(defaults.get("output", "json"))
    if output not in OUTPUT_FORMATS:
        raise ValueError(f"{path}: output must be one of {', '.join(OUTPUT_FORMATS)}")
    modules = data.get("modules", {})
    if not isinstance(modules, dict):
        raise ValueError(f"{path}: [modules] must be a table")
    return FerroConfig(
        playbook=Path(playbook),
        aws_region=str(aws_region) if aws_region else None,
        aws_profile=str(aws_profile) if aws_profile else None,
        output=output,
        plugin_dirs=[Path(p) for p in defaults.get("plugin_dirs", [])],
        plugin_modules=[str(m) for m in defaults.get("plugin_modules", [])],
        module_defaults={str(k): dict(v) for k, v in modules.items()},
    )
