import os
import tomllib
from pathlib import Path

from errors import ConfigError

CONFIG_VERSION=1
DEFAULT_CONFIG=Path(__file__).with_name("default_config.toml")

BLUE = "\033[34m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"

def colored_log(color, tag, text): print(f"{color}[{tag}]{RESET} {text}")

def write_default_config(path):
    from .random_port import get_random_unused_port
    with open(DEFAULT_CONFIG) as fc:
        # first two lines of the template are a note for maintainers
        template="".join(fc.readlines()[2:])
    with open(path, "w") as f:
        f.write(template.replace("$PORT", str(get_random_unused_port())))
    colored_log(YELLOW, "CONFIG", f"Wrote {path}")

def load_config(path="config.toml"):
    if not os.path.isfile(path) or os.path.getsize(path)==0:
        write_default_config(path)
    try:
        with open(path, "rb") as f:
            config=tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path} is not valid TOML: {e}") from e
    if config.get("version", 0)<CONFIG_VERSION:
        raise ConfigError(f"Your {path} version doesn't match, please remove it and run the program again to create a new one")
    for section in ("certificate", "server", "output"):
        if not isinstance(config.get(section, {}), dict):
            raise ConfigError(f"[{section}] in {path} must be a table")
        config.setdefault(section, {})
    return config
