# Overview: Server-Sent Events stream of the caller's restaurant events.

from flask import Blueprint, Response, current_app, g, request, stream_with_context

from ..responses import failure
from ..services.realtime_service import broker, stream
from ..decorators import require_auth


realtime_bp = Blueprint("realtime", __name__, url_prefix="/api/realtime")


@realtime_bp.get("/stream")
@require_auth
def stream_route():
    """
    Subscribe to order, inventory and cash-close events of the caller's
    restaurant. Frames are `event: <type>` / `data: <json>`.
    """
    if not current_app.config.get("REALTIME_ENABLED", True):
        return failure("Real-time updates are disabled", 404)

    max_events = request.args.get("max_events", type=int)
    subscription = broker.subscribe(g.restaurant_id)

    response = Response(
        stream_with_context(stream(subscription, max_events=max_events)),
        mimetype="text/event-stream",
    )
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
