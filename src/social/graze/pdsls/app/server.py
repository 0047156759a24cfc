import contextlib
import functools
import logging
from time import time
from typing import Any, Dict, Optional
import aiohttp
from aiohttp import web
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.pdsls.address import MalformedInput, RouteParams
from social.graze.pdsls.app.config import (
    MetricsClientAppKey,
    ResolverAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
)
from social.graze.pdsls.app.metrics import create_metrics_client
from social.graze.pdsls.atproto.pds import known_pds_hosts
from social.graze.pdsls.atproto.xrpc import create_session
from social.graze.pdsls.resolve.handle import IdentityResolver, ResolutionError
from social.graze.pdsls.views.base import ListingView, ViewState
from social.graze.pdsls.views.navigator import Navigator

logger = logging.getLogger(__name__)

MAX_PAGES = 20

EXAMPLES = [
    {
        "kind": "PDS URL",
        "input": "https://pds.bsky.mom",
        "href": "/pds.bsky.mom",
    },
    {
        "kind": "AT URI",
        "input": "at://did:plc:oisofpd7lj26yvgiivf3lxsi/app.bsky.feed.post/3l2zpbbhuvw2h",
        "href": "/at/did:plc:oisofpd7lj26yvgiivf3lxsi/app.bsky.feed.post/3l2zpbbhuvw2h",
    },
    {
        "kind": "Bluesky Link",
        "input": "https://bsky.app/profile/mary.my.id/post/3kenlltlvus2u",
        "href": "/at/did:plc:ia76kvnndjutgedggx2ibrem/app.bsky.feed.post/3kenlltlvus2u",
    },
]


def navigator_for_app(app: web.Application) -> Navigator:
    settings = app[SettingsAppKey]
    session_factory = functools.partial(
        create_session,
        app[SessionAppKey],
        metrics_client=app[MetricsClientAppKey],
        debug=settings.debug,
    )
    return Navigator(
        resolver=app[ResolverAppKey],
        session_factory=session_factory,
        record_page_size=settings.record_page_size,
        repo_page_size=settings.repo_page_size,
    )


async def handle_index(request: web.Request) -> web.Response:
    return web.json_response(
        {"label": "PDS URL or AT URI (at:// optional)", "examples": EXAMPLES}
    )


async def handle_submit(request: web.Request) -> web.Response:
    data = await request.post()
    raw = str(data.get("input", ""))
    navigator = navigator_for_app(request.app)
    try:
        route = await navigator.locate(raw)
    except MalformedInput as e:
        return web.json_response(status=400, data={"error": str(e)})
    if route is None:
        return web.json_response(status=404, data={"error": navigator.notice.text})
    raise web.HTTPSeeOther(location=route.to_path())


async def handle_internal_alive(request: web.Request) -> web.Response:
    return web.Response(status=200)


async def handle_internal_pds(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    hosts = await known_pds_hosts(request.app[SessionAppKey], settings.pds_state_url)
    return web.json_response(hosts)


async def handle_internal_resolve(request: web.Request) -> web.Response:
    subjects = request.query.getall("subject", [])
    resolver = request.app[ResolverAppKey]

    results = []
    for subject in subjects:
        try:
            resolved = await resolver.resolve(subject)
        except ResolutionError as e:
            logger.info("Could not resolve %s: %s", subject, e)
            continue
        results.append(resolved.model_dump())
    return web.json_response(results)


def requested_pages(request: web.Request) -> Optional[int]:
    value = request.query.get("pages", "1")
    if not value.isdigit():
        return None
    return max(1, min(int(value), MAX_PAGES))


async def handle_view(request: web.Request) -> web.Response:
    try:
        route = RouteParams.from_path(request.path)
    except MalformedInput as e:
        return web.json_response(status=400, data={"error": str(e)})

    pages = requested_pages(request)
    if pages is None:
        return web.json_response(
            status=400, data={"error": "pages must be a positive integer"}
        )

    navigator = navigator_for_app(request.app)
    view = await navigator.navigate(route)

    if isinstance(view, ListingView):
        for _ in range(pages - 1):
            if not await view.load_more() or view.state != ViewState.ready:
                break

    body: Dict[str, Any] = view.snapshot()
    body["notice"] = navigator.notice.text
    status = 502 if view.state == ViewState.failed else 200
    return web.json_response(status=status, data=body)


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    prefix = request.app[SettingsAppKey].statsd_prefix
    request_method: str = request.method

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            f"{prefix}.server.request.exception",
            1,
            tag_dict={"exception": type(e).__name__, "method": request_method},
        )
        raise e
    finally:
        metrics_client.timer(
            f"{prefix}.server.request.time",
            time() - start_time,
            tag_dict={"method": request_method},
        )
        metrics_client.increment(
            f"{prefix}.server.request.count",
            1,
            tag_dict={"method": request_method, "status": response_status_code},
        )


async def background_resources(app: web.Application):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    http_session = aiohttp.ClientSession(trace_configs=[trace_config])
    app[SessionAppKey] = http_session
    app[ResolverAppKey] = IdentityResolver(http_session, settings.plc_hostname)

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    with contextlib.suppress(aiohttp.ClientError):
        await http_session.close()
    await metrics_client.close()


async def start_web_server(settings: Optional[Settings] = None) -> web.Application:

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings

    app.add_routes(
        [
            web.get("/", handle_index),
            web.post("/", handle_submit),
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/api/pds", handle_internal_pds),
            web.get("/internal/api/resolve", handle_internal_resolve),
        ]
    )

    app.add_routes(
        [
            web.get("/{pds}", handle_view),
            web.get("/{pds}/{repo}", handle_view),
            web.get("/{pds}/{repo}/{collection}", handle_view),
            web.get("/{pds}/{repo}/{collection}/{rkey}", handle_view),
        ]
    )

    app.cleanup_ctx.append(background_resources)

    return app
