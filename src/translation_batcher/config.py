"""
Translation batcher configuration management.

Settings come from three sources, highest priority first:

    1. Environment variables - for containerized or scripted runs
    2. Config file (config/batcher.ini) - for static deployments
    3. Built-in defaults - the reference values (budget 50, wait 20)

Configuration is loaded once at module import time and cached. The
BatcherConfig dataclass provides typed access to all settings.

Usage:
    from translation_batcher.config import config

    print(config.scheduler.total_budget)
    print(config.logging.level)

Environment Variable Mapping:
    BATCHER_TOTAL_BUDGET   -> scheduler.total_budget
    BATCHER_WAIT_CYCLES    -> scheduler.wait_cycles
    BATCHER_LOG_LEVEL      -> logging.level
    BATCHER_LOG_FORMAT     -> logging.format
    BATCHER_DROP_RATE      -> simulation.drop_rate
    BATCHER_MAX_CYCLES     -> simulation.max_cycles
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from translation_batcher.translation.scheduler import DEFAULT_TOTAL_BUDGET, DEFAULT_WAIT_CYCLES

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "batcher.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "batcher.example.ini"

LOG_FORMATS = ("simple", "detailed", "json")


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class SchedulerSettings:
    """Cycle scheduler tuning."""

    total_budget: int = DEFAULT_TOTAL_BUDGET
    wait_cycles: int = DEFAULT_WAIT_CYCLES


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "simple"


@dataclass
class SimulationSettings:
    """Defaults for the ``simulate`` command's fake resolver."""

    actors: int = 5
    items_per_actor: int = 40
    drop_rate: float = 0.05
    duplicate_rate: float = 0.02
    max_delay_cycles: int = 5
    max_cycles: int = 2000
    seed: int | None = None


@dataclass
class BatcherConfig:
    """
    Complete configuration.

    Access via the module-level `config` singleton.
    """

    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_rate(value: str) -> float:
    """Parse a probability; accepts "0.1" or "10%"."""
    value = value.strip()
    if value.endswith("%"):
        return float(value[:-1]) / 100.0
    return float(value)


def _load_from_ini(parser: configparser.ConfigParser, cfg: BatcherConfig) -> None:
    """Load configuration from a parsed INI file into BatcherConfig."""
    # Scheduler section
    if parser.has_section("scheduler"):
        if parser.has_option("scheduler", "total_budget"):
            cfg.scheduler.total_budget = parser.getint("scheduler", "total_budget")
        if parser.has_option("scheduler", "wait_cycles"):
            cfg.scheduler.wait_cycles = parser.getint("scheduler", "wait_cycles")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in LOG_FORMATS:
                cfg.logging.format = val  # type: ignore[assignment]

    # Simulation section
    if parser.has_section("simulation"):
        if parser.has_option("simulation", "actors"):
            cfg.simulation.actors = parser.getint("simulation", "actors")
        if parser.has_option("simulation", "items_per_actor"):
            cfg.simulation.items_per_actor = parser.getint("simulation", "items_per_actor")
        if parser.has_option("simulation", "drop_rate"):
            cfg.simulation.drop_rate = _parse_rate(parser.get("simulation", "drop_rate"))
        if parser.has_option("simulation", "duplicate_rate"):
            cfg.simulation.duplicate_rate = _parse_rate(
                parser.get("simulation", "duplicate_rate")
            )
        if parser.has_option("simulation", "max_delay_cycles"):
            cfg.simulation.max_delay_cycles = parser.getint("simulation", "max_delay_cycles")
        if parser.has_option("simulation", "max_cycles"):
            cfg.simulation.max_cycles = parser.getint("simulation", "max_cycles")
        if parser.has_option("simulation", "seed"):
            seed = parser.get("simulation", "seed").strip()
            cfg.simulation.seed = int(seed) if seed else None


def _apply_env_overrides(cfg: BatcherConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_budget := os.getenv("BATCHER_TOTAL_BUDGET"):
        cfg.scheduler.total_budget = int(env_budget)
    if env_wait := os.getenv("BATCHER_WAIT_CYCLES"):
        cfg.scheduler.wait_cycles = int(env_wait)

    if env_log := os.getenv("BATCHER_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_format := os.getenv("BATCHER_LOG_FORMAT"):
        if env_format.lower() in LOG_FORMATS:
            cfg.logging.format = env_format.lower()  # type: ignore[assignment]

    if env_drop := os.getenv("BATCHER_DROP_RATE"):
        cfg.simulation.drop_rate = _parse_rate(env_drop)
    if env_cycles := os.getenv("BATCHER_MAX_CYCLES"):
        cfg.simulation.max_cycles = int(env_cycles)


def validate_config(cfg: BatcherConfig) -> None:
    """
    Reject settings the scheduler cannot run with.

    Raises:
        ValueError: Naming the first offending setting.
    """
    if cfg.scheduler.total_budget < 1:
        raise ValueError(f"scheduler.total_budget must be >= 1, got {cfg.scheduler.total_budget}")
    if cfg.scheduler.wait_cycles < 1:
        raise ValueError(f"scheduler.wait_cycles must be >= 1, got {cfg.scheduler.wait_cycles}")
    if cfg.logging.level not in logging.getLevelNamesMapping():
        raise ValueError(f"logging.level must be a standard level name, got {cfg.logging.level!r}")
    for name in ("drop_rate", "duplicate_rate"):
        rate = getattr(cfg.simulation, name)
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"simulation.{name} must be between 0 and 1, got {rate}")
    if cfg.simulation.max_delay_cycles < 1:
        raise ValueError(
            f"simulation.max_delay_cycles must be >= 1, got {cfg.simulation.max_delay_cycles}"
        )


def load_config(config_file: Path | None = None) -> BatcherConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. ``config_file`` if given, else config/batcher.ini
        3. config/batcher.example.ini (fallback for development)
        4. Built-in defaults

    Raises:
        FileNotFoundError: If an explicitly given ``config_file`` is missing.
        ValueError: If the merged settings are invalid.
    """
    cfg = BatcherConfig()

    if config_file is not None:
        if not Path(config_file).exists():
            raise FileNotFoundError(f"config file not found: {config_file}")
    else:
        if CONFIG_FILE.exists():
            config_file = CONFIG_FILE
        elif CONFIG_EXAMPLE.exists():
            config_file = CONFIG_EXAMPLE

    if config_file:
        # Rates may be written as percentages ("5%")
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)
    validate_config(cfg)
    return cfg


def reload_config(config_file: Path | None = None) -> BatcherConfig:
    """Reload configuration from disk and environment into `config`."""
    global config
    config = load_config(config_file)
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """Configuration source and key values, for diagnostics."""
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "total_budget": config.scheduler.total_budget,
        "wait_cycles": config.scheduler.wait_cycles,
        "log_level": config.logging.level,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("TRANSLATION BATCHER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("NOTE: Using example config (copy to batcher.ini to customise)")
    print("-" * 60)
    print(f"Total budget: {config.scheduler.total_budget} per cycle")
    print(f"Wait cycles:  {config.scheduler.wait_cycles}")
    print(f"Log level:    {config.logging.level} ({config.logging.format})")
    print(
        f"Simulation:   {config.simulation.actors} actor(s), "
        f"drop {config.simulation.drop_rate:.0%}, "
        f"duplicate {config.simulation.duplicate_rate:.0%}"
    )
    print("=" * 60 + "\n")
