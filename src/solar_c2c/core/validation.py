"""
Integration settings validation

Required settings are checked locally first; only when all are present is
the provider asked to verify the credentials with one request.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from .domain import ErrorDetail, IntegrationConfiguration, Result

logger = logging.getLogger(__name__)

MISSING_SETTINGS_SUFFIX = "0001"
VALIDATION_FAILED_SUFFIX = "0002"

DEFAULT_MESSAGES = {
    "missingSettings": "Missing required settings.",
    "missingSetting": "The {key} setting is required.",
    "validationFailed": "Validation failed: {error}",
}

MessageSource = Callable[[str, dict, Optional[str]], str]


def default_message_source(code: str, args: dict, locale: Optional[str] = None) -> str:
    """English messages; locale is accepted and ignored"""
    return DEFAULT_MESSAGES[code].format(**args)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def validate_required_settings(config: IntegrationConfiguration,
                               required_settings: Sequence[str],
                               locale: Optional[str] = None,
                               message_source: MessageSource = default_message_source) -> List[ErrorDetail]:
    """
    Check required settings for presence and non-blankness

    Args:
        config: Integration to check
        required_settings: Setting keys, in declaration order
        locale: Message locale
        message_source: Message lookup

    Returns:
        One ErrorDetail per missing setting, in declaration order
    """
    props = config.service_properties or {}
    errors = []
    for key in required_settings:
        value = props.get(key)
        if is_blank(value):
            errors.append(ErrorDetail(key, value, message_source("missingSetting", {"key": key}, locale)))
    return errors


class SettingsValidator:
    """Validates required settings, then verifies them against the provider"""

    def __init__(self, code_prefix: str, required_settings: Sequence[str],
                 verify: Callable[[IntegrationConfiguration], Any],
                 message_source: MessageSource = default_message_source):
        """
        Args:
            code_prefix: Error code prefix for this provider
            required_settings: Required setting keys, in declaration order
            verify: Performs the single verification request
            message_source: Message lookup
        """
        self.code_prefix = code_prefix
        self.required_settings = list(required_settings)
        self.verify = verify
        self.message_source = message_source

    def code(self, suffix: str) -> str:
        return f"{self.code_prefix}.{suffix}"

    def validate(self, config: IntegrationConfiguration, locale: Optional[str] = None) -> Result:
        errors = validate_required_settings(config, self.required_settings, locale, self.message_source)
        if errors:
            logger.info(f"Integration {config.key} missing settings: {[e.location for e in errors]}")
            return Result.error(self.code(MISSING_SETTINGS_SUFFIX),
                                self.message_source("missingSettings", {}, locale), errors)

        try:
            self.verify(config)
        except Exception as e:
            logger.warning(f"Integration {config.key} validation failed: {e}")
            return Result.error(self.code(VALIDATION_FAILED_SUFFIX),
                                self.message_source("validationFailed", {"error": e}, locale))
        return Result.ok()
