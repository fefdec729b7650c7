"""
Real-time module for Socket.IO based chat delivery.
The namespace lives in roomshare.realtime.socket; import it from there.
"""
from roomshare.realtime.hub import ChatHub

__all__ = ["ChatHub"]
