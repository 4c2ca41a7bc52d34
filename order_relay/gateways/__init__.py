"""Persistence and broadcast gateways."""

from .base import Broadcaster, OrderStore
from .mongo_store import MongoOrderStore
from .pusher_broadcast import LogBroadcaster, PusherBroadcaster

__all__ = ["Broadcaster", "LogBroadcaster", "MongoOrderStore", "OrderStore", "PusherBroadcaster"]
