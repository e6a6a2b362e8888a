"""
ThreatWatch WebSocket Detection Feed

Real-time detection streaming via WebSocket.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Set

from fastapi import WebSocket, WebSocketDisconnect

from ..events import DetectionResult
from ..notifications import NotificationHub, Subscription

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """
    Manages WebSocket connections for the live detection feed.

    Channels: ``detections`` (every result), ``alerts`` (high and critical
    results) and ``all``.
    """

    CHANNELS = ("detections", "alerts", "all")

    def __init__(self):
        """Initialize connection manager."""
        self._connections: Set[WebSocket] = set()
        self._subscribers: Dict[str, Set[WebSocket]] = {
            channel: set() for channel in self.CHANNELS
        }
        self._subscriptions: List[Subscription] = []

    def attach(self, hub: NotificationHub):
        """Forward engine notifications to connected clients."""
        self._subscriptions.append(hub.on("threat_detected", self.send_detection))
        self._subscriptions.append(hub.on("high_risk_threat", self.send_alert))

    def detach(self):
        """Stop forwarding engine notifications."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

    async def connect(self, websocket: WebSocket, channel: str = "all"):
        """
        Accept a new WebSocket connection.

        Args:
            websocket: WebSocket connection
            channel: Subscription channel (detections, alerts, all)
        """
        await websocket.accept()
        self._connections.add(websocket)

        if channel in self._subscribers:
            self._subscribers[channel].add(websocket)

        logger.info(f"WebSocket connected, channel: {channel}, total: {len(self._connections)}")

    def disconnect(self, websocket: WebSocket):
        """
        Handle WebSocket disconnection.

        Args:
            websocket: WebSocket connection
        """
        self._connections.discard(websocket)

        for channel in self._subscribers.values():
            channel.discard(websocket)

        logger.debug(f"WebSocket disconnected, remaining: {len(self._connections)}")

    async def broadcast(self, message: Dict[str, Any], channel: str = "all"):
        """
        Broadcast message to all subscribers of a channel.

        Args:
            message: Message to send
            channel: Target channel
        """
        data = json.dumps(message, default=str)

        if channel == "all":
            targets = set(self._connections)
        else:
            targets = self._subscribers.get(channel, set()) | self._subscribers.get("all", set())

        disconnected = []
        for connection in targets:
            try:
                await connection.send_text(data)
            except Exception:
                disconnected.append(connection)

        for conn in disconnected:
            self.disconnect(conn)

    async def send_detection(self, result: DetectionResult):
        await self.broadcast({
            "type": "detection",
            "timestamp": _now(),
            "data": result.to_dict(),
        }, "detections")

    async def send_alert(self, result: DetectionResult):
        await self.broadcast({
            "type": "alert",
            "timestamp": _now(),
            "data": result.to_dict(),
        }, "alerts")

    def get_connection_count(self) -> int:
        """Get active connection count."""
        return len(self._connections)

    def get_channel_counts(self) -> Dict[str, int]:
        """Get subscriber count per channel."""
        return {
            channel: len(subs)
            for channel, subs in self._subscribers.items()
        }


async def websocket_endpoint(websocket: WebSocket, manager: ConnectionManager, channel: str = "all"):
    """
    WebSocket endpoint handler.

    Args:
        websocket: WebSocket connection
        manager: Connection manager of the running application
        channel: Subscription channel
    """
    if channel not in ConnectionManager.CHANNELS:
        await websocket.close(code=1008)
        return

    await manager.connect(websocket, channel)

    try:
        await websocket.send_json({
            "type": "connected",
            "channel": channel,
            "timestamp": _now(),
        })

        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=30.0
                )

                if data == "ping":
                    await websocket.send_text("pong")

            except asyncio.TimeoutError:
                await websocket.send_json({
                    "type": "heartbeat",
                    "timestamp": _now(),
                })

    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(websocket)
