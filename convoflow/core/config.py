"""Configuration loader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .flows.catalog import FlowCatalog, parse_solutions, parse_steps
from .knowledge import KnowledgeEntry, load_knowledge_entries
from .models import SessionConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("convoflow.yaml")
ENV_FILE_NAME = ".env"

ENV_OVERRIDES = {
    "CONVOFLOW_MAX_MESSAGES": ("context", "max_messages", int),
    "CONVOFLOW_COMPRESSION_THRESHOLD": ("context", "compression_threshold", int),
    "CONVOFLOW_RETENTION_HOURS": ("context", "retention_hours", float),
    "CONVOFLOW_MAX_ESCALATION_LEVEL": ("flows", "max_escalation_level", int),
}


@dataclass
class ContextConfig:
    max_messages: int = 50
    compression_threshold: int = 30
    retention_hours: float = 24


@dataclass
class FlowConfig:
    max_escalation_level: int = 3
    preservation_threshold: int = 50
    preserved_recent_messages: int = 20
    catalog: FlowCatalog = field(default_factory=FlowCatalog)


@dataclass
class Config:
    context: ContextConfig = field(default_factory=ContextConfig)
    flows: FlowConfig = field(default_factory=FlowConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    knowledge_entries: List[KnowledgeEntry] = field(default_factory=list)
    log_level: str = "INFO"
    config_path: Optional[Path] = None


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from YAML plus environment overrides.

    A missing file is not an error: defaults are used and a warning is logged.
    A ``.env`` file next to the YAML file is loaded without overriding the
    shell environment.
    """
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_FILE
    _load_env_file(path.parent / ENV_FILE_NAME)
    data = _read_yaml(path)

    context = _build_section(ContextConfig, data.get("context"), "context")
    session = _build_section(SessionConfig, data.get("session"), "session")
    flows = _build_flows(data.get("flows"))
    _apply_env_overrides(context, flows)
    _validate(context, flows, session)

    knowledge_entries: List[KnowledgeEntry] = []
    knowledge_file = data.get("knowledge_file")
    if knowledge_file:
        knowledge_path = Path(knowledge_file).expanduser()
        if not knowledge_path.is_absolute():
            knowledge_path = (path.parent / knowledge_path).resolve()
        knowledge_entries = load_knowledge_entries(knowledge_path)

    log_level = (os.getenv("LOG_LEVEL") or data.get("log_level") or "INFO").upper()

    return Config(
        context=context,
        flows=flows,
        session=session,
        knowledge_entries=knowledge_entries,
        log_level=log_level,
        config_path=path if path.exists() else None,
    )


def _load_env_file(path: Path) -> None:
    if not path.exists():
        LOGGER.debug("No .env file found at %s; relying on shell environment.", path)
        return
    load_dotenv(dotenv_path=path, override=False)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        LOGGER.warning("No config file found at %s; using defaults.", path)
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config structure at {path}")
    return data


def _build_section(cls, raw: Optional[Mapping], name: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"{name} section must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown {name} option(s): {', '.join(unknown)}")
    try:
        return cls(**raw)
    except TypeError as exc:
        raise ConfigError(f"Invalid {name} section: {exc}") from exc


def _build_flows(raw: Optional[Mapping]) -> FlowConfig:
    if raw is None:
        return FlowConfig()
    if not isinstance(raw, dict):
        raise ConfigError("flows section must be a mapping")

    raw = dict(raw)
    onboarding_raw = raw.pop("onboarding", None)
    solutions_raw = raw.pop("troubleshooting", None)
    flows = _build_section(FlowConfig, raw, "flows")

    catalog = FlowCatalog()
    try:
        if onboarding_raw:
            if not isinstance(onboarding_raw, dict):
                raise ConfigError("flows.onboarding must map flow types to step lists")
            catalog.onboarding = {
                str(flow_type): parse_steps(steps) for flow_type, steps in onboarding_raw.items()
            }
        if solutions_raw:
            catalog.solutions = parse_solutions(solutions_raw)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid flow catalog: {exc}") from exc

    for flow_type, steps in catalog.onboarding.items():
        if not steps:
            raise ConfigError(f"Onboarding flow {flow_type} has no steps")
    flows.catalog = catalog
    return flows


def _apply_env_overrides(context: ContextConfig, flows: FlowConfig) -> None:
    sections = {"context": context, "flows": flows}
    for env_name, (section, attr, caster) in ENV_OVERRIDES.items():
        raw_value = os.getenv(env_name)
        if raw_value is None or raw_value.strip() == "":
            continue
        try:
            value = caster(raw_value)
        except ValueError as exc:
            raise ConfigError(f"{env_name} must be a number, got {raw_value!r}") from exc
        setattr(sections[section], attr, value)
        LOGGER.debug("Applied %s=%s from environment", env_name, value)


def _validate(context: ContextConfig, flows: FlowConfig, session: SessionConfig) -> None:
    for name, section in (("context", context), ("flows", flows), ("session", session)):
        for f in fields(section):
            value = getattr(section, f.name)
            if f.type in ("int", "float") and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                raise ConfigError(f"{name}.{f.name} must be a number, got {value!r}")
    if context.max_messages < 1:
        raise ConfigError("context.max_messages must be at least 1")
    if context.compression_threshold < 0:
        raise ConfigError("context.compression_threshold must be non-negative")
    if context.retention_hours <= 0:
        raise ConfigError("context.retention_hours must be positive")
    if flows.max_escalation_level < 1:
        raise ConfigError("flows.max_escalation_level must be at least 1")
    if flows.preserved_recent_messages < 1:
        raise ConfigError("flows.preserved_recent_messages must be at least 1")
    if session.max_messages < 1:
        raise ConfigError("session.max_messages must be at least 1")
