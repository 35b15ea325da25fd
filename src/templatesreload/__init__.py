"""templates-reload: live browser reload for FastAPI and Starlette apps.

Watches templates, stylesheets and scripts during development and tells
connected browsers to reload when they change.

Usage:
    app = FastAPI()
    templatesreload.setup(
        app,
        watch=[
            {"path": "public/style.css"},
            {"path": "views", "extensions": [".html"]},
        ],
        options={"quiet": False},
    )
"""

from templatesreload.client import render_client_script
from templatesreload.config import ReloadOptions, is_production, load_config
from templatesreload.errors import (
    ConfigurationError,
    DeliveryError,
    TemplatesReloadError,
    WatchArmingError,
)
from templatesreload.injection import ReloadScriptMiddleware, ResponseInjector
from templatesreload.installation import LiveReload, setup
from templatesreload.watching import WatchTarget, validate_targets

__version__ = "0.1.0"

__all__ = [
    "setup",
    "LiveReload",
    "ReloadOptions",
    "WatchTarget",
    "validate_targets",
    "load_config",
    "is_production",
    "render_client_script",
    "ResponseInjector",
    "ReloadScriptMiddleware",
    "TemplatesReloadError",
    "ConfigurationError",
    "WatchArmingError",
    "DeliveryError",
]
