"""Webhook delivery adapter.

Posts the JSON payload with urllib. Every attempt is a single request: no
retries, no redirects, and a bounded timeout for both connect and read.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Mapping

from hookrelay.core.config import DEFAULT_DELIVERY_TIMEOUT_SECONDS
from hookrelay.core.models import DeliveryOutcome

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json"}

ALLOWED_SCHEMES = ("http", "https")


class _RejectRedirects(urllib.request.HTTPRedirectHandler):
    # Only 2xx counts as delivered, so a redirect surfaces as an HTTPError.
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def merge_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Overlay caller headers on the defaults; caller keys win regardless of case."""

    merged = dict(DEFAULT_HEADERS)
    for key, value in headers.items():
        for existing in [name for name in merged if name.lower() == key.lower()]:
            del merged[existing]
        merged[key] = value
    return merged


class WebhookClient:
    """DeliveryPort implementation over urllib."""

    def __init__(self, timeout_seconds: float = DEFAULT_DELIVERY_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout_seconds
        self._opener = urllib.request.build_opener(_RejectRedirects())

    def deliver(self, url: str, payload: Mapping[str, Any], headers: Mapping[str, str]) -> DeliveryOutcome:
        """POST the payload to one URL and describe what happened."""

        try:
            # urllib would otherwise open file: or data: URLs from the config.
            scheme = urllib.parse.urlsplit(url).scheme.lower()
            if scheme not in ALLOWED_SCHEMES:
                LOGGER.error("Refusing webhook URL %s: unsupported scheme %r", url, scheme)
                return DeliveryOutcome(url=url, succeeded=False, error=f"unsupported URL scheme: {scheme!r}")
            data = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
            request = urllib.request.Request(url, data=data, headers=merge_headers(headers), method="POST")
            with self._opener.open(request, timeout=self._timeout) as response:
                status = response.status
        except urllib.error.HTTPError as exc:
            exc.close()
            LOGGER.warning("Webhook failed for %s: %s", url, exc.code)
            return DeliveryOutcome(url=url, succeeded=False, http_status=exc.code, error=str(exc))
        except (OSError, http.client.HTTPException, ValueError) as exc:
            # URLError, timeouts and refused connections are all OSError subclasses.
            LOGGER.error("Error sending webhook to %s: %r", url, exc)
            return DeliveryOutcome(url=url, succeeded=False, error=repr(exc))

        succeeded = 200 <= status < 300
        if succeeded:
            LOGGER.info("Webhook sent successfully to %s: %s", url, status)
        else:
            LOGGER.warning("Webhook failed for %s: %s", url, status)
        return DeliveryOutcome(url=url, succeeded=succeeded, http_status=status)

    def post(self, url: str, payload: Mapping[str, Any], headers: Mapping[str, str]) -> bool:
        return self.deliver(url, payload, headers).succeeded
