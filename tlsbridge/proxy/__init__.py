from .dispatcher import ConnectionReuse, UpstreamDispatcher
from .handler import ProxyHandler
from .models import (
    DispatchOutcome,
    DispatchSuccess,
    InboundRequest,
    OutboundRequest,
    RequestContext,
    TransportFailure,
)
from .translator import (
    HeaderValueInvalidError,
    InvalidComposedUriError,
    QueryMerge,
    TranslationError,
    translate,
)

__all__ = [
    "ConnectionReuse",
    "UpstreamDispatcher",
    "ProxyHandler",
    "DispatchOutcome",
    "DispatchSuccess",
    "InboundRequest",
    "OutboundRequest",
    "RequestContext",
    "TransportFailure",
    "HeaderValueInvalidError",
    "InvalidComposedUriError",
    "QueryMerge",
    "TranslationError",
    "translate",
]
