"""JSON file configuration adapter.

Implements the core RuleStorePort on top of a flat, user-editable JSON file.
The file is re-read on every call so edits take effect on the next event
without restarting the process.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

from hookrelay.core.config import config_bool
from hookrelay.core.models import EndpointSet, Rule
from hookrelay.core.rules_engine import parse_rules

LOGGER = logging.getLogger(__name__)


class JsonConfigStore:
    """Read rules, endpoints and switches from config.json."""

    def __init__(self, config_path: str) -> None:
        self._config_path = config_path

    def _load(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self._config_path, "r", encoding="utf-8") as handle:
                config = json.load(handle)
        except (OSError, ValueError):
            LOGGER.exception("Unable to read config file %s", self._config_path)
            return None
        if not isinstance(config, dict):
            LOGGER.error("Config file %s must contain a JSON object", self._config_path)
            return None
        return config

    def _source_entries(self, config: Dict[str, Any], source_id: str) -> List[Dict[str, Any]]:
        raw_sources = config.get("sources") or []
        if not isinstance(raw_sources, list):
            LOGGER.error("'sources' must be a list")
            return []
        return [
            entry
            for entry in raw_sources
            if isinstance(entry, dict) and entry.get("source_id") == source_id
        ]

    def is_feature_enabled(self) -> bool:
        config = self._load()
        if config is None:
            return False
        webhook = config.get("webhook") or {}
        return isinstance(webhook, dict) and config_bool(webhook.get("enabled"), False)

    def is_source_monitored(self, source_id: str) -> bool:
        """Decide whether events from a source are captured at all.

        A source listed in ``sources`` follows its own ``enabled`` flag. Any
        other source follows ``monitor_all_sources`` (default true), so adding
        one source entry never silently stops monitoring the rest.
        """

        config = self._load()
        if config is None:
            return False
        entries = self._source_entries(config, source_id)
        if entries:
            return config_bool(entries[0].get("enabled"), True)
        return config_bool(config.get("monitor_all_sources"), True)

    def load_rules(self, source_id: str) -> List[Rule]:
        """Return the filter rules of the first matching source entry."""

        config = self._load()
        if config is None:
            return []
        for entry in self._source_entries(config, source_id):
            raw_rules = entry.get("filter_rules")
            if raw_rules is not None:
                return parse_rules(raw_rules)
        return []

    def load_endpoints(self, source_id: str) -> EndpointSet:
        """Merge source-specific URLs with the global fallback URL.

        URLs are deduplicated keeping first occurrence, so the order sent to the
        dispatcher is stable: source URLs first, then the global URL.
        """

        config = self._load()
        if config is None:
            return EndpointSet()

        urls: Dict[str, None] = {}
        for entry in self._source_entries(config, source_id):
            raw_urls = entry.get("webhook_urls") or []
            if not isinstance(raw_urls, list):
                LOGGER.error("webhook_urls for %s must be a list", source_id)
                continue
            for url in raw_urls:
                if isinstance(url, str) and url.strip():
                    urls.setdefault(url.strip(), None)

        webhook = _webhook_section(config)
        global_url = webhook.get("url")
        if isinstance(global_url, str) and global_url.strip():
            urls.setdefault(global_url.strip(), None)

        return EndpointSet(urls=tuple(urls), headers=_parse_headers(webhook.get("headers")))

    def webhook_headers(self) -> Dict[str, str]:
        """Headers sent with every delivery; they usually carry the endpoint's token."""

        config = self._load()
        if config is None:
            return {}
        return _parse_headers(_webhook_section(config).get("headers"))


def _webhook_section(config: Dict[str, Any]) -> Dict[str, Any]:
    webhook = config.get("webhook") or {}
    if not isinstance(webhook, dict):
        LOGGER.error("'webhook' must be an object")
        return {}
    return webhook


def _parse_headers(raw_headers: Any) -> Dict[str, str]:
    # Older configs store headers as a JSON-encoded string.
    if raw_headers is None:
        return {}
    if isinstance(raw_headers, str):
        if not raw_headers.strip():
            return {}
        try:
            raw_headers = json.loads(raw_headers)
        except ValueError:
            LOGGER.exception("Error parsing webhook headers")
            return {}
    if not isinstance(raw_headers, dict):
        LOGGER.error("Webhook headers must be an object")
        return {}
    return {str(key): str(value) for key, value in raw_headers.items()}
