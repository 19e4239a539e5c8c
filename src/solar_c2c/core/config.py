"""
Integration settings from .env files

Credentials are kept in a local .env file (KEY=VALUE lines, ``#`` comments)
with owner-only permissions, and mapped to integration service properties by
a provider prefix: ``ENPHASE_API_KEY`` becomes the ``apiKey`` setting of an
``enphase`` integration. Process environment variables fill in anything the
file does not define.

Usage:
    config = integration_from_env("solaredge", user_id=1, config_id=1,
                                  setting_keys=["apiKey"])
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from .domain import IntegrationConfiguration

logger = logging.getLogger(__name__)

ENV_HEADER = "# Solar cloud integration credentials - DO NOT COMMIT TO GIT\n"


def env_var_name(prefix: str, setting_key: str) -> str:
    """
    Environment variable name for a setting

    Args:
        prefix: Provider prefix, e.g. ``enphase``
        setting_key: camelCase setting key, e.g. ``oauthClientId``

    Returns:
        Upper snake case name, e.g. ``ENPHASE_OAUTH_CLIENT_ID``
    """
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", setting_key).upper()
    return f"{prefix.upper()}_{snake}"


def load_env_settings(env_file: Union[str, Path] = ".env") -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file, or an empty dict if absent"""
    path = Path(env_file)
    settings: Dict[str, str] = {}
    if not path.exists():
        return settings

    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if "=" in line and not line.startswith("#"):
                key, value = line.split("=", 1)
                settings[key.strip()] = value.strip().strip('"').strip("'")
    return settings


def save_env_settings(env_file: Union[str, Path], settings: Dict[str, Optional[str]]) -> bool:
    """
    Save settings to a .env file readable only by its owner

    Args:
        env_file: Destination file
        settings: Key/value pairs; empty values are skipped

    Returns:
        True if saved successfully
    """
    path = Path(env_file)
    content = ENV_HEADER
    for key, value in settings.items():
        if value:
            content += f"{key}={value}\n"

    try:
        with open(path, "w") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Error saving settings to {path}: {e}")
        return False

    try:
        os.chmod(path, 0o600)
    except (OSError, NotImplementedError):
        logger.warning(f"Could not restrict permissions on {path}")
    return True


def check_env_security(env_file: Union[str, Path] = ".env") -> Dict[str, bool]:
    """Check the .env file is private and ignored by git"""
    path = Path(env_file)
    gitignore_file = path.parent / ".gitignore"

    checks = {
        "env_exists": path.exists(),
        "gitignore_exists": gitignore_file.exists(),
        "env_in_gitignore": False,
        "secure_permissions": False,
    }

    if gitignore_file.exists():
        with open(gitignore_file, "r") as f:
            checks["env_in_gitignore"] = ".env" in f.read()

    if path.exists():
        checks["secure_permissions"] = oct(path.stat().st_mode)[-3:] == "600"

    return checks


def integration_from_env(provider_id: str, user_id: int, config_id: int,
                         setting_keys: Iterable[str],
                         env_file: Union[str, Path] = ".env",
                         name: Optional[str] = None) -> IntegrationConfiguration:
    """
    Build an integration configuration from .env and environment variables

    Args:
        provider_id: Provider identifier, also the variable prefix
        user_id: Owning user
        config_id: Integration id
        setting_keys: Settings to read
        env_file: .env file; values there win over the process environment
        name: Optional display name

    Returns:
        IntegrationConfiguration holding every setting that was found
    """
    file_settings = load_env_settings(env_file)
    props = {}
    for key in setting_keys:
        var = env_var_name(provider_id, key)
        value = file_settings.get(var) or os.environ.get(var)
        if value:
            props[key] = value
    logger.info(f"Loaded {len(props)} {provider_id} settings for integration {(user_id, config_id)}")
    return IntegrationConfiguration(user_id, config_id, provider_id, props, name=name)
