"""User-Agent composition.

Downstream analytics parse this string, so its layout is fixed::

    <AppName>/<AppVersion> <Platform>/<PlatformVersion> (<machine>) forcerest-python-sdk/<SDKVersion> <AppType><Qualifier>
"""

from __future__ import annotations

import os
import platform

from ._version import __version__

SDK_NAME = "forcerest-python-sdk"
DEFAULT_APP_TYPE = "Python"


def _token(value: str) -> str:
    return "_".join(value.split()) or "unknown"


def user_agent_string(
    qualifier: str = "",
    *,
    app_name: str | None = None,
    app_version: str | None = None,
    app_type: str = DEFAULT_APP_TYPE,
) -> str:
    """Return the User-Agent, with ``qualifier`` appended to the app type."""
    name = app_name or os.getenv("FORCEREST_APP_NAME") or "python"
    version = app_version or os.getenv("FORCEREST_APP_VERSION") or platform.python_version()
    system = platform.system() or "unknown"
    release = platform.release() or "unknown"
    machine = platform.machine() or "unknown"
    return (
        f"{_token(name)}/{_token(version)} {_token(system)}/{_token(release)} ({_token(machine)}) "
        f"{SDK_NAME}/{__version__} {_token(app_type)}{qualifier.strip()}"
    )
