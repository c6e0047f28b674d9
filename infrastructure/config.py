"""
WORDMAP CONFIG - Engine Configuration

Configuration is loaded once and handed to the components that need it.

Sources, lowest to highest precedence:
1. Dataclass defaults (below)
2. config/wordmap.toml (or the file named by WORDMAP_CONFIG)
3. Environment variables:
   - WORDMAP_MAX_TOTAL_NODES
   - WORDMAP_MAX_WORDS_PER_GENERATION
   - WORDMAP_HISTORY_MAX_DEPTH
   - WORDMAP_LLM_MODEL
   - WORDMAP_LLM_TEMPERATURE

Usage:
    from infrastructure.config import get_config

    config = get_config()
    db = MindMapDB.create("happy", config.max_total_nodes, config.layout)
"""
import os
import tomllib
import warnings
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from core.ontology import (
    DEFAULT_MAX_TOTAL_NODES,
    DEFAULT_MAX_WORDS_PER_GENERATION,
    DEFAULT_HISTORY_MAX_DEPTH,
)
from core.layout import LayoutConfig
from core.llm import DEFAULT_MODEL
from infrastructure.logger import LoggerConfig


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "wordmap.toml"


# =============================================================================
# CONFIGURATION SECTIONS
# =============================================================================

@dataclass(frozen=True)
class GenerationConfig:
    """Word-generation settings."""
    max_words_per_generation: int = DEFAULT_MAX_WORDS_PER_GENERATION
    min_similarity: float = 0.4            # Candidates scored below this are dropped
    tie_margin: float = 0.05               # Similarity gap under which usage decides order
    tokens_per_expansion: float = 0.5      # Billing units reported per successful expansion


@dataclass(frozen=True)
class LLMConfig:
    """LiteLLM settings for the default word generator."""
    model: str = DEFAULT_MODEL
    temperature: float = 0.0
    max_tokens: int = 500
    max_attempts: int = 3


@dataclass(frozen=True)
class EngineConfig:
    """Everything the mind map engine can be tuned with."""
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    max_total_nodes: int = DEFAULT_MAX_TOTAL_NODES
    history_max_depth: int = DEFAULT_HISTORY_MAX_DEPTH
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    logging: LoggerConfig = field(default_factory=LoggerConfig)

    @property
    def max_words_per_generation(self) -> int:
        return self.generation.max_words_per_generation

    def __post_init__(self):
        if self.max_total_nodes < 1:
            raise ValueError(f"max_total_nodes must be positive, got {self.max_total_nodes}")
        if self.generation.max_words_per_generation < 1:
            raise ValueError(
                "max_words_per_generation must be positive, "
                f"got {self.generation.max_words_per_generation}"
            )


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from wordmap.toml.

    Returns:
        Dict with all configuration sections, or {} if the file is missing
        or malformed (a warning is emitted)
    """
    config_path = Path(path or os.getenv("WORDMAP_CONFIG") or DEFAULT_CONFIG_PATH)
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def _section(cls, values: Dict[str, Any]):
    """Build a dataclass section from a TOML table, ignoring unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        warnings.warn(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    kwargs = {k: v for k, v in values.items() if k in known}
    if cls is LoggerConfig and "log_path" in kwargs:
        kwargs["log_path"] = Path(kwargs["log_path"])
    return cls(**kwargs)


def build_config(data: Dict[str, Any]) -> EngineConfig:
    """Turn a parsed TOML document into an EngineConfig."""
    limits = data.get("limits", {})
    generation = dict(data.get("generation", {}))
    if "max_words_per_generation" in limits:
        generation.setdefault("max_words_per_generation", limits["max_words_per_generation"])

    return EngineConfig(
        layout=_section(LayoutConfig, data.get("layout", {})),
        max_total_nodes=int(limits.get("max_total_nodes", DEFAULT_MAX_TOTAL_NODES)),
        history_max_depth=int(data.get("history", {}).get("max_depth", DEFAULT_HISTORY_MAX_DEPTH)),
        generation=_section(GenerationConfig, generation),
        llm=_section(LLMConfig, data.get("llm", {})),
        logging=_section(LoggerConfig, data.get("logging", {})),
    )


def apply_env_overrides(config: EngineConfig) -> EngineConfig:
    """Apply WORDMAP_* environment variables on top of a config."""
    env = os.environ
    if "WORDMAP_MAX_TOTAL_NODES" in env:
        config = replace(config, max_total_nodes=int(env["WORDMAP_MAX_TOTAL_NODES"]))
    if "WORDMAP_MAX_WORDS_PER_GENERATION" in env:
        config = replace(config, generation=replace(
            config.generation,
            max_words_per_generation=int(env["WORDMAP_MAX_WORDS_PER_GENERATION"]),
        ))
    if "WORDMAP_HISTORY_MAX_DEPTH" in env:
        config = replace(config, history_max_depth=int(env["WORDMAP_HISTORY_MAX_DEPTH"]))
    if "WORDMAP_LLM_MODEL" in env:
        config = replace(config, llm=replace(config.llm, model=env["WORDMAP_LLM_MODEL"]))
    if "WORDMAP_LLM_TEMPERATURE" in env:
        config = replace(config, llm=replace(config.llm, temperature=float(env["WORDMAP_LLM_TEMPERATURE"])))
    return config


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Defaults <- TOML file <- environment."""
    return apply_env_overrides(build_config(load_toml_config(path)))


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[EngineConfig]) -> None:
    """Replace the process-wide configuration (useful in tests)."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the loaded configuration; the next get_config() reloads it."""
    global _config
    _config = None
