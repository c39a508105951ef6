# Overview: Pytest coverage for the event broker, dispatch and the SSE stream.

"""
Real-time Tests

- events reach only subscribers of their own restaurant
- dispatch never raises and honours REALTIME_ENABLED
- the stream starts with a 'connected' frame and unsubscribes on close
"""

import json

from resto.services.realtime_service import (
    DomainEvent,
    EventBroker,
    broker,
    dispatch,
    format_sse,
    stream,
)


class TestBroker:

    def test_publish_is_scoped_to_restaurant(self):
        local = EventBroker()
        sub_1 = local.subscribe(1)
        sub_2 = local.subscribe(2)

        delivered = local.publish(DomainEvent(1, "order.created", {"order_id": 7}))
        assert delivered == 1
        assert sub_1.get(timeout=0).payload == {"order_id": 7}
        assert sub_2.get(timeout=0) is None

    def test_unsubscribe(self):
        local = EventBroker()
        sub = local.subscribe(1)
        assert local.subscriber_count(1) == 1
        sub.close()
        assert local.subscriber_count(1) == 0
        assert local.publish(DomainEvent(1, "order.created")) == 0

    def test_full_queue_drops_events(self):
        local = EventBroker()
        sub = local.subscribe(1)
        for idx in range(sub.queue.maxsize):
            local.publish(DomainEvent(1, "tick", {"n": idx}))
        assert local.publish(DomainEvent(1, "tick", {"n": "overflow"})) == 0
        assert sub.queue.qsize() == sub.queue.maxsize


class TestDispatch:

    def test_dispatch_delivers(self, app, subscription_a, restaurant_a, drain):
        dispatch([DomainEvent(restaurant_a.id, "inventory.low_stock", {"item_id": 1})])
        assert [event.type for event in drain(subscription_a)] == ["inventory.low_stock"]

    def test_dispatch_disabled(self, app, subscription_a, restaurant_a, drain):
        app.config["REALTIME_ENABLED"] = False
        try:
            dispatch([DomainEvent(restaurant_a.id, "inventory.low_stock", {})])
        finally:
            app.config["REALTIME_ENABLED"] = True
        assert drain(subscription_a) == []


class TestStream:

    def test_format_sse(self):
        frame = format_sse("order.created", {"id": 1})
        assert frame == 'event: order.created\ndata: {"id": 1}\n\n'

    def test_stream_frames_and_cleanup(self):
        local = EventBroker()
        sub = local.subscribe(3)
        local.publish(DomainEvent(3, "order.updated", {"id": 9}))

        frames = list(stream(sub, heartbeat=0.01, max_events=1))
        assert frames[0].startswith("event: connected\n")
        assert frames[-1] == format_sse("order.updated", {"id": 9})
        assert local.subscriber_count(3) == 0

    def test_stream_heartbeat_when_quiet(self):
        local = EventBroker()
        sub = local.subscribe(4)
        gen = stream(sub, heartbeat=0.01)
        next(gen)
        assert next(gen) == ": heartbeat\n\n"
        gen.close()
        assert local.subscriber_count(4) == 0

    def test_endpoint_streams_restaurant_events(self, client, admin_headers, restaurant_a):
        resp = client.get("/api/realtime/stream?max_events=1", headers=admin_headers, buffered=False)
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"

        chunks = resp.response
        first = next(chunks)
        first = first.decode() if isinstance(first, bytes) else first
        assert first.startswith("event: connected\n")
        payload = json.loads(first.split("data: ", 1)[1])
        assert payload["restaurant_id"] == restaurant_a.id

        broker.publish(DomainEvent(restaurant_a.id, "order.created", {"id": 5}))
        frame = next(chunks)
        frame = frame.decode() if isinstance(frame, bytes) else frame
        assert frame == format_sse("order.created", {"id": 5})
        resp.close()
        assert broker.subscriber_count(restaurant_a.id) == 0

    def test_endpoint_disabled(self, app, client, admin_headers):
        app.config["REALTIME_ENABLED"] = False
        try:
            resp = client.get("/api/realtime/stream", headers=admin_headers)
        finally:
            app.config["REALTIME_ENABLED"] = True
        assert resp.status_code == 404
