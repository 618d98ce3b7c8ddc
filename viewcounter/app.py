import base64
import json
import logging
import re
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor

from flask import Flask, Response, current_app, render_template_string, request

from .axiom import AxiomClient
from .config import Settings
from .counter import ViewCounter, is_valid_id
from .periods import PeriodError, resolve_period

logger = logging.getLogger(__name__)

# 1x1 transparent gif (tracking pixel), decoded once at import
TRANSPARENT_GIF = base64.b64decode(
    "R0lGODlhAQABAPAAAAAAAAAAACH5BAUKAAAALAAAAAABAAEAQAICRAEAOw=="
)

MISSING_ID = 'Error: URL is missing "id" in the query string.'
INVALID_ID = 'Error: Value for "id" query param is invalid.'
MISSING_PERIOD = 'Error: URL is missing "period" in the query string.'

LANDING_PAGE = """
<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8"/>
    <title>Free and easy pixel view counter</title>
    <style>html, body { background: #09090b; color: #a1a1aa; font-family: ui-sans-serif, system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif; }</style>
    <style>code,pre{color:white;}</style>
    <style>a {color:white;}</style>
  </head>
  <body>
    <div>Please include the following html on your page to start tracking views.</div>
    <pre>&lt;img src="{{ base_url }}pixel.gif?id={{ new_id }}" /&gt;</pre>
    <div>You can access the amount of views via <code><a href="/views?id={{ new_id }}&amp;period=1d">{{ base_url }}views?id={{ new_id }}&amp;period=1d</a></code></div>
    <div>This page has had {{ views }} views.</div>
    <img src="/pixel.gif?id={{ self_id }}" onerror="this.remove();" />
  </body>
</html>
"""

_BETWEEN_TAGS = re.compile(r">\s+<")


def create_app(settings: Settings | None = None, backend=None,
               executor: Executor | None = None) -> Flask:
    """
    Build the app around one backend client and one ingest pool.
    Passing backend/executor is how tests swap in fakes.
    """
    settings = settings or Settings.from_env()
    backend = backend or AxiomClient.from_settings(settings)
    executor = executor or ThreadPoolExecutor(
        max_workers=settings.ingest_workers, thread_name_prefix="ingest"
    )

    app = Flask(__name__)
    app.config["VIEWCOUNTER_SETTINGS"] = settings
    app.extensions["view_counter"] = ViewCounter(
        backend, settings.axiom_dataset, executor, max_pending=settings.ingest_queue
    )

    app.before_request(log_request)
    app.add_url_rule("/", view_func=index)
    app.add_url_rule("/views", view_func=views)
    app.add_url_rule("/pixel.gif", view_func=pixel)
    app.add_url_rule("/favicon.ico", view_func=favicon)
    app.add_url_rule("/healthz", view_func=healthz)
    app.register_error_handler(404, not_found)
    return app


def counter() -> ViewCounter:
    return current_app.extensions["view_counter"]


def text(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def gif_response() -> Response:
    return Response(TRANSPARENT_GIF, mimetype="image/gif")


def validate_id(value: str | None) -> str | None:
    """
    Error message for a bad id, None when it is usable.
    """
    if not value:
        return MISSING_ID
    if not is_valid_id(value):
        return INVALID_ID
    return None


# -----------------------------------------------------------------------------
# Hooks
# -----------------------------------------------------------------------------
def log_request():
    logger.info("%s %s", request.method, request.url)


def not_found(exc):
    return text("Page not found.", 404)


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
def index():
    settings = current_app.config["VIEWCOUNTER_SETTINGS"]
    html = render_template_string(
        LANDING_PAGE,
        base_url=request.host_url,
        new_id=str(uuid.uuid4()),
        views=counter().count_views(settings.self_id, "y", 1),
        self_id=settings.self_id,
    )
    html = _BETWEEN_TAGS.sub("><", html).strip()
    return Response(html, mimetype="text/html")


def views():
    # Example: ?id=abc&period=1y
    view_id = request.args.get("id")
    error = validate_id(view_id)
    if error:
        return text(error, 400)

    raw_period = request.args.get("period")
    if not raw_period:
        return text(MISSING_PERIOD, 400)
    try:
        period = resolve_period(raw_period)
    except PeriodError as exc:
        return text(str(exc), 400)

    count = counter().count_views(view_id, period.unit, period.length)
    return Response(json.dumps(count, indent=2), mimetype="application/json")


def pixel():
    """
    Tracking pixel. Embed as:
      <img src="https://counter.example/pixel.gif?id=my-page">
    The view is recorded in the background; the gif goes out regardless.
    """
    view_id = request.args.get("id")
    error = validate_id(view_id)
    if error:
        return text(error, 400)

    counter().record_view(view_id, request)

    resp = gif_response()
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    return resp


def favicon():
    return gif_response()


def healthz():
    return text("ok")


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    logger.info("Listening at http://localhost:%d", settings.port)
    # Dev server; in a container run gunicorn "viewcounter.app:create_app()"
    app.run(host="0.0.0.0", port=settings.port, threaded=True)


if __name__ == "__main__":
    main()
