"""Asana resource-access engine.

Modules:
- models: hybrid Resource model, Reference and Page
- client: authenticated transport and cursor pagination
- fields: detail level -> opt_fields resolution
- dispatcher: (resource kind, verb) -> API call
- traversal: depth-bounded, cycle-safe hierarchy expansion
- errors: error taxonomy and remote error mapping
- config: environment settings
"""

__version__ = "0.1.0"

from .client import AsanaClient
from .config import Settings, get_settings
from .dispatcher import Dispatcher
from .errors import AsanaError
from .fields import DetailLevel, FieldResolver
from .models import Page, Reference, Resource

__all__ = [
    "AsanaClient",
    "AsanaError",
    "DetailLevel",
    "Dispatcher",
    "FieldResolver",
    "Page",
    "Reference",
    "Resource",
    "Settings",
    "get_settings",
    "__version__",
]
