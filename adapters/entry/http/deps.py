from __future__ import annotations

from fastapi import Request

from workers.feed_supervisor import FeedSupervisor


def get_supervisor(request: Request) -> FeedSupervisor:
    """
    Supervisor attached to the app at startup (see main.create_app).
    """
    return request.app.state.supervisor
