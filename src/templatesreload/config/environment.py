"""Development/production activation gate."""

from __future__ import annotations

import os
from collections.abc import Mapping

# Checked in order; the first one that is set decides.
ENVIRONMENT_VARIABLES = ("APP_ENV", "ENV")

PRODUCTION = "production"


def current_environment(environ: Mapping[str, str] | None = None) -> str | None:
    """Return the deployment environment name, or None if none is declared."""
    env = os.environ if environ is None else environ
    for name in ENVIRONMENT_VARIABLES:
        value = env.get(name)
        if value:
            return value.strip().lower()
    return None


def is_production(environ: Mapping[str, str] | None = None) -> bool:
    """True when the process declares a production deployment.

    Live reload stays completely inert in that case.
    """
    return current_environment(environ) == PRODUCTION
