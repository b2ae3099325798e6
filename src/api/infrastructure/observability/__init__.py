"""Domain-oriented observability infrastructure.

Domain probes encapsulate instrumentation details and provide a
domain-focused API for observability.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from infrastructure.observability.context import ObservationContext

__all__ = [
    "ObservationContext",
]
