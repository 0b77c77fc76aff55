"""
MQTT listener
Receives device readings from the broker and feeds them into the ingestion pipeline
"""

import asyncio
import json
import logging
from typing import Optional
from urllib.parse import urlparse

import paho.mqtt.client as mqtt

from app.config import settings
from app.core.exceptions import AppError
from app.database import SessionLocal
from app.models.sensor import ReadingSource
from app.services.ingestion import ingest_reading

logger = logging.getLogger(__name__)


def device_id_from_topic(topic: str) -> Optional[str]:
    """Extract `<id>` from `devices/<id>/sensor`"""
    parts = topic.split("/")
    if len(parts) >= 3 and parts[0] == "devices" and parts[1]:
        return parts[1]
    return None


class MQTTListener:
    """
    Subscribes to device topics and ingests each message on the app event loop

    paho runs its network loop in its own thread; messages are handed over with
    run_coroutine_threadsafe and processed with a fresh database session.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        evaluator=None,
        manager=None,
        session_factory=SessionLocal,
        broker_url: Optional[str] = None,
        topic: Optional[str] = None,
        qos: Optional[int] = None,
    ):
        self.loop = loop
        self.evaluator = evaluator
        self.manager = manager
        self.session_factory = session_factory
        self.broker_url = broker_url or settings.MQTT_BROKER_URL
        self.topic = topic or settings.MQTT_TOPIC
        self.qos = settings.MQTT_QOS if qos is None else qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    def start(self):
        parsed = urlparse(self.broker_url)
        host = parsed.hostname or "localhost"
        port = parsed.port or 1883
        if parsed.username:
            self.client.username_pw_set(parsed.username, parsed.password)

        self.client.connect_async(host, port, settings.MQTT_KEEPALIVE)
        self.client.loop_start()
        logger.info(f"MQTT listener connecting to {host}:{port}")

    def stop(self):
        self.client.loop_stop()
        self.client.disconnect()
        logger.info("MQTT listener stopped")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"MQTT connection failed: {reason_code}")
            return
        client.subscribe(self.topic, qos=self.qos)
        logger.info(f"MQTT connected, subscribed to '{self.topic}' (qos {self.qos})")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        logger.warning(f"MQTT disconnected: {reason_code}")

    def _on_message(self, client, userdata, msg):
        asyncio.run_coroutine_threadsafe(self.handle_message(msg.topic, msg.payload), self.loop)

    async def handle_message(self, topic: str, payload: bytes):
        """Ingest one MQTT message; failures are logged and the message dropped"""
        device_id = device_id_from_topic(topic)
        if device_id is None:
            logger.warning(f"Ignoring MQTT message on unexpected topic '{topic}'")
            return

        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Rejected MQTT payload from {device_id}: invalid JSON")
            return

        db = self.session_factory()
        try:
            await ingest_reading(
                db,
                data,
                evaluator=self.evaluator,
                manager=self.manager,
                source=ReadingSource.MQTT,
                device_id=device_id,
            )
        except AppError as e:
            logger.warning(f"Rejected MQTT reading from {device_id}: {e.message}")
        except Exception as e:
            logger.error(f"Error processing MQTT reading from {device_id}: {e}", exc_info=True)
        finally:
            db.close()
