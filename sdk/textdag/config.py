"""INI-style configuration file for textdag tools."""

import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, Optional, Union

from .corpus import CorpusConfig

CONFIG_ENV = "TEXTDAG_CONFIG"

DEFAULT_CONFIG_TEXT = (
    "[corpus]\n"
    "batch_size = 100\n"
    "concurrency = 10\n"
    "extractor_timeout_ms = 0\n\n"
    "[engine]\n"
    "provider = simple\n"
    "lowercase = false\n"
    "stopwords =\n\n"
    "[search]\n"
    "top_k = 10\n"
)


def read_config(path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """Parse the config file into a flat {"section.key": value} dict.

    Falls back to $TEXTDAG_CONFIG when no path is given. A missing file
    yields an empty dict, so every lookup takes its default.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV)
    if not path:
        return {}
    config_path = Path(path)
    if not config_path.exists():
        return {}

    config: Dict[str, str] = {}
    section = ""
    for line in config_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith(";"):
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            continue
        if "=" in line:
            key, _, val = line.partition("=")
            key = key.strip()
            val = val.strip()
            config[f"{section}.{key}" if section else key] = val
    return config


def write_default_config(path: Union[str, Path]) -> Path:
    """Write the default config unless a file already exists there."""
    config_path = Path(path)
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(DEFAULT_CONFIG_TEXT)
    return config_path


def get_bool(config: Dict[str, str], key: str, default: bool = False) -> bool:
    value = config.get(key)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


def get_int(config: Dict[str, str], key: str, default: int) -> int:
    value = config.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Config value {key} must be an integer, got {value!r}") from None


def load_corpus_config(config: Dict[str, str], **overrides) -> CorpusConfig:
    """Build a CorpusConfig from the [corpus] section; 0 ms means no timeout."""
    timeout_ms = get_int(config, "corpus.extractor_timeout_ms", 0)
    return CorpusConfig(
        batch_size=get_int(config, "corpus.batch_size", 100),
        concurrency=get_int(config, "corpus.concurrency", 10),
        extractor_timeout=timedelta(milliseconds=timeout_ms) if timeout_ms > 0 else None,
        **overrides,
    )


def load_engine(config: Dict[str, str]):
    """Instantiate the text engine named by engine.provider."""
    provider = config.get("engine.provider", "simple") or "simple"
    if provider != "simple":
        raise ValueError(f"Unknown text engine provider: {provider}")

    from engines.simple_engine import SimpleEngine

    stopwords = [w for w in config.get("engine.stopwords", "").replace(",", " ").split() if w]
    return SimpleEngine(lowercase=get_bool(config, "engine.lowercase"), stopwords=stopwords)
