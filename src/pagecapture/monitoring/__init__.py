"""Session monitoring: outbound event bus and inbound overlay command channel.

Usage::

    from pagecapture.monitoring.event_bus import EventBus, EventType, LoggingSink

    bus = EventBus(session_id="abc123")
    bus.add_sink(LoggingSink())
    await bus.emit(EventType.PROGRESS, {"count": 1})
"""
