"""bantal.integrations — External service gateway modules.

All outbound HTTP calls go through a gateway in this package, never via
bare `requests` calls in services or blueprints. A gateway:
  - Bounds every call with a timeout
  - Caches what the provider allows to be cached
  - Raises IntegrationError (with the downstream status) instead of
    leaking transport exceptions
"""
