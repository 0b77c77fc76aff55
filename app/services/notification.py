"""
Notification Service
Keeps the registry of WebSocket clients and pushes readings, alerts and
device status changes to the ones that asked for them
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import WebSocket

from app.core.security import get_user_id_from_token

logger = logging.getLogger(__name__)


@dataclass
class ClientConnection:
    """One open socket and the scopes it is tagged with"""
    id: str
    websocket: WebSocket
    device_id: Optional[str] = None
    farm_id: Optional[int] = None
    user_id: Optional[int] = None

    def matches(self, device_id: Optional[str], user_id: Optional[int], farm_id: Optional[int]) -> bool:
        if device_id is not None and self.device_id == device_id:
            return True
        if user_id is not None and self.user_id == user_id:
            return True
        if farm_id is not None and self.farm_id == farm_id:
            return True
        return False


def _message_field(message: Dict[str, Any], key: str) -> Any:
    data = message.get("data")
    if isinstance(data, dict) and data.get(key) is not None:
        return data[key]
    return message.get(key)


class ConnectionManager:
    """
    Registry of connected WebSocket clients

    A single instance lives on the application state. Connections are only
    added or retagged by their own socket handler and removed on disconnect or
    when a send to them fails.
    """

    def __init__(self):
        self.connections: Dict[str, ClientConnection] = {}

    async def connect(self, websocket: WebSocket) -> ClientConnection:
        await websocket.accept()
        connection = ClientConnection(id=str(uuid.uuid4()), websocket=websocket)
        self.connections[connection.id] = connection
        logger.info(f"WebSocket client connected: {connection.id} ({len(self.connections)} open)")
        return connection

    def disconnect(self, connection: ClientConnection):
        if self.connections.pop(connection.id, None) is not None:
            logger.info(f"WebSocket client disconnected: {connection.id}")

    async def send(self, connection: ClientConnection, message: Dict[str, Any]) -> bool:
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Dropping WebSocket client {connection.id}: {e}")
            self.disconnect(connection)
            return False

    async def broadcast(
        self,
        message: Dict[str, Any],
        device_id: Optional[str] = None,
        user_id: Optional[int] = None,
        farm_id: Optional[int] = None
    ) -> int:
        """
        Send a message once to every connection tagged with any of the given scopes

        Returns the number of clients reached.
        """
        targets: List[ClientConnection] = [
            connection for connection in list(self.connections.values())
            if connection.matches(device_id, user_id, farm_id)
        ]

        delivered = 0
        for connection in targets:
            if await self.send(connection, message):
                delivered += 1
        return delivered

    async def handle_message(self, connection: ClientConnection, raw: str):
        """Apply one client message to the connection's tags"""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Invalid WebSocket message from {connection.id}")
            return

        if not isinstance(message, dict):
            logger.warning(f"Invalid WebSocket message from {connection.id}")
            return

        message_type = message.get("type")

        if message_type == "subscribe":
            device_id = _message_field(message, "deviceId")
            if device_id:
                connection.device_id = str(device_id).strip().upper()
                logger.info(f"Client {connection.id} subscribed to device {connection.device_id}")

        elif message_type == "unsubscribe":
            logger.info(f"Client {connection.id} unsubscribed from device {connection.device_id}")
            connection.device_id = None

        elif message_type == "subscribeFarm":
            farm_id = _message_field(message, "farmId")
            try:
                connection.farm_id = int(farm_id)
                logger.info(f"Client {connection.id} subscribed to farm {connection.farm_id}")
            except (TypeError, ValueError):
                logger.warning(f"Client {connection.id} sent invalid farm id: {farm_id!r}")

        elif message_type == "auth":
            token = _message_field(message, "token")
            user_id = get_user_id_from_token(token) if isinstance(token, str) and token else None
            if user_id is None:
                logger.warning(f"WebSocket authentication failed for client {connection.id}")
            else:
                connection.user_id = user_id
                logger.info(f"Client {connection.id} authenticated as user {user_id}")

        elif message_type == "ping":
            await self.send(connection, {
                "type": "pong",
                "data": {"timestamp": datetime.utcnow().isoformat()}
            })

        else:
            logger.warning(f"Unknown WebSocket message type from {connection.id}: {message_type!r}")
