from fastapi import APIRouter, Request
from fastapi.responses import Response

from tlsbridge.proxy import InboundRequest

router = APIRouter()

PROXIED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"]


def path_and_query(request: Request) -> str:
    """The request target as received, without the percent-decoding ASGI applies to ``path``."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


async def build_inbound_request(request: Request) -> InboundRequest:
    return InboundRequest(
        method=request.method,
        path_and_query=path_and_query(request),
        headers=[
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in request.headers.raw
        ],
        body=await request.body(),
    )


@router.api_route("/{path:path}", methods=PROXIED_METHODS)
async def proxy_all(request: Request, path: str) -> Response:
    """Catch-all route that proxies every request to the upstream."""
    inbound = await build_inbound_request(request)
    return await request.app.state.proxy_handler.handle(inbound)
