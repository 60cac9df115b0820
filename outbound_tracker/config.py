"""Tracker settings: environment variable, else property, else default.

Properties stand in for JVM-style system properties: a plain mapping the
host owns and may change at runtime. Lookups happen on every call, never
cached.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values

QUEUE_NAME_ENV = "AAL_QUEUE_NAME"
QUEUE_NAME_PROPERTY = "aal_queue_name"
DEFAULT_QUEUE_NAME = "aal_outbound_request_logging_queue"

CLIENT_ID_ENV = "AAL_CLIENT_ID"
CLIENT_ID_PROPERTY = "aal.client_id"


def resolve_setting(
    env_var: str,
    property_name: str,
    properties: Mapping[str, str] | None = None,
    default: str | None = None,
) -> str | None:
    value = os.environ.get(env_var)
    if value is None and properties is not None:
        value = properties.get(property_name)
    return default if value is None else value


def queue_name(properties: Mapping[str, str] | None = None) -> str:
    return resolve_setting(
        QUEUE_NAME_ENV, QUEUE_NAME_PROPERTY, properties, DEFAULT_QUEUE_NAME
    )


def client_id(properties: Mapping[str, str] | None = None) -> str | None:
    return resolve_setting(CLIENT_ID_ENV, CLIENT_ID_PROPERTY, properties)


def load_properties(path: str | Path) -> dict[str, str]:
    """Read a KEY=value properties file. Keys without a value are dropped."""
    return {k: v for k, v in dotenv_values(path).items() if v is not None}
