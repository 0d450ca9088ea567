"""Consent cookie parsing and per-platform consent decisions."""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
from typing import Any

from adsync.visits.config import ConsentConfig, Platform

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"

# Length of the pseudonymous id substituted for a visitor id
PSEUDONYMOUS_ID_LENGTH = 16


def user_id_is_logged_in(user_id: str | None) -> bool:
    """Return True if the visit carries a real logged-in user id."""
    if user_id is None:
        return False
    value = str(user_id).strip()
    return bool(value) and value.lower() != "unknown"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def parse_cookie(raw: Any) -> dict[str, bool] | None:
    """Parse a consent cookie into a service name to boolean map.

    Supported forms:
        - JSON object: ``{"conversion-api": true, "analytics": false}``
        - JSON array of accepted service names: ``["conversion-api"]``
        - Comma list: ``conversion-api:true,analytics:false``; a bare
          ``true``/``false`` item sets the ``default`` entry
        - Bare ``"true"``/``"false"`` string or a bool

    Returns:
        The parsed map, or None if the value is not in a supported form.

    Example:
        >>> parse_cookie("conversion-api:true,ads:false")
        {'conversion-api': True, 'ads': False}
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return {DEFAULT_KEY: raw}

    text = str(raw).strip()
    if not text:
        return None

    if text[0] in "{[":
        try:
            decoded = json.loads(text.replace("&quot;", '"'))
        except ValueError:
            logger.warning("Consent cookie looks like JSON but could not be decoded")
            return None
        if isinstance(decoded, dict):
            return {str(key): _parse_bool(value) for key, value in decoded.items()}
        if isinstance(decoded, list):
            return {str(name): True for name in decoded if isinstance(name, str | int)}
        return None

    if text.lower() in ("true", "false"):
        return {DEFAULT_KEY: text.lower() == "true"}

    if ":" in text or "," in text:
        consent: dict[str, bool] = {}
        for item in text.split(","):
            item = item.strip()
            if not item:
                continue
            if ":" in item:
                key, _, value = item.partition(":")
                consent[key.strip()] = value.strip().lower() == "true"
            elif item.lower() in ("true", "false"):
                consent[DEFAULT_KEY] = item.lower() == "true"
        return consent or None

    logger.warning("Unrecognized consent cookie format")
    return None


class ConsentResolver:
    """Decides per visit and platform whether personal data may be sent.

    A resolver holds a random salt for pseudonymous ids. Create one per run so
    ids are stable within the run and unlinkable across runs.
    """

    def __init__(self, salt: str | None = None):
        self._salt = salt if salt is not None else secrets.token_hex(16)

    def resolve(
        self,
        raw_cookie: Any,
        platform: Platform,
        consent_config: ConsentConfig,
        has_logged_in_user_id: bool,
    ) -> bool:
        """Resolve consent for one platform.

        Args:
            raw_cookie: Raw consent cookie value from the visit.
            platform: Platform the data would be sent to.
            consent_config: Site consent configuration.
            has_logged_in_user_id: Whether the visit belongs to a logged-in user.

        Returns:
            True if personal data may be included. Anything unclear denies.
        """
        if has_logged_in_user_id:
            return True

        service = consent_config.service_for(platform)
        if service is None:
            logger.debug(f"No consent service configured for {platform.value}; denying")
            return False

        consent = parse_cookie(raw_cookie)
        if consent is None:
            if raw_cookie not in (None, ""):
                logger.info(f"Could not parse consent cookie for {platform.value}; denying")
            return False

        if service in consent:
            return consent[service]
        if DEFAULT_KEY in consent:
            return consent[DEFAULT_KEY]

        logger.info(f"Consent cookie has no entry for service '{service}'; denying")
        return False

    def create_random_id(self, visit_id: str) -> str:
        """Return a pseudonymous id for a visit that cannot identify the visitor."""
        digest = hashlib.sha256(f"{visit_id}-{self._salt}".encode()).hexdigest()
        return digest[:PSEUDONYMOUS_ID_LENGTH]
