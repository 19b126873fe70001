"""Knowledge entries consumed by the classifier's ranking step."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import yaml

from .errors import ConfigError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeEntry:
    id: str
    question: str
    answer: str
    category: str
    keywords: Tuple[str, ...] = ()


def load_knowledge_entries(path: Path) -> List[KnowledgeEntry]:
    """Read a YAML list of knowledge entries."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Knowledge file not found at {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("entries")
    if not isinstance(data, list):
        raise ConfigError(f"Knowledge file {path} must contain a list of entries")

    entries = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ConfigError(f"Knowledge entry #{index} must be a mapping")
        try:
            entries.append(
                KnowledgeEntry(
                    id=str(item.get("id", index)),
                    question=str(item["question"]),
                    answer=str(item["answer"]),
                    category=str(item.get("category", "general")).lower(),
                    keywords=tuple(str(k) for k in item.get("keywords") or ()),
                )
            )
        except KeyError as exc:
            raise ConfigError(f"Knowledge entry #{index} is missing {exc}") from exc

    if not entries:
        LOGGER.warning("No knowledge entries found in %s", path)
    LOGGER.info("Loaded %d knowledge entries from %s", len(entries), path)
    return entries
