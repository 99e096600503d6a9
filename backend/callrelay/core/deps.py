from fastapi import Request

from callrelay.services.relay import CallRelay


def get_relay(request: Request) -> CallRelay:
    return request.app.state.relay
