"""
Environment variable substitution for loaded configuration.

`${VAR_NAME}` is replaced by the variable's value and `{env}` by the active
environment name. A reference to an unset variable is left in place, so
`unresolved_variables` can report it against the setting that holds it.
"""

from __future__ import annotations

import os
import re
from typing import Any

_ENV_VAR = re.compile(r"\${([^}]+)}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve `${VAR}` and `{env}` placeholders in every string value.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        Resolved configuration
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    elif isinstance(value, str):
        result = _ENV_VAR.sub(lambda m: os.getenv(m.group(1), m.group(0)), value)
        return result.replace("{env}", env)
    else:
        return value


def unresolved_variables(config_data: Any, path: str = "") -> list[tuple[str, str]]:
    """
    Find `${VAR}` references left after resolution.

    Returns:
        (setting path, variable name) pairs, e.g. ("sftp.password", "SFTP_PASSWORD").
        List items appear as `message.fields[2].custom_value`.

    Examples:
        >>> unresolved_variables({"sftp": {"host": "${NO_SUCH_HOST_VAR}", "port": 22}})
        [('sftp.host', 'NO_SUCH_HOST_VAR')]
    """
    if isinstance(config_data, dict):
        found = []
        for key, value in config_data.items():
            found.extend(unresolved_variables(value, f"{path}.{key}" if path else str(key)))
        return found
    if isinstance(config_data, list):
        found = []
        for index, item in enumerate(config_data):
            found.extend(unresolved_variables(item, f"{path}[{index}]"))
        return found
    if isinstance(config_data, str):
        return [(path, name) for name in _ENV_VAR.findall(config_data)]
    return []
