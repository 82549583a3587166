import json
import logging
import threading
from kafka import KafkaProducer
from ordersaga.core.config import settings

logger = logging.getLogger(__name__)

_producer = None
_lock = threading.Lock()

def get_producer() -> KafkaProducer:
    global _producer
    with _lock:
        if _producer is None:
            _producer = KafkaProducer(
                bootstrap_servers=[settings.KAFKA_BOOTSTRAP],
                value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                key_serializer=lambda v: (v.encode("utf-8") if isinstance(v, str) else v),
                linger_ms=5,
                retries=3,
            )
    return _producer

def send(topic: str, key: str, value: dict):
    p = get_producer()
    p.send(topic, key=key, value=value)
    p.flush(5)

def close():
    global _producer
    with _lock:
        if _producer is not None:
            try:
                _producer.flush(5)
                _producer.close(5)
            except Exception:
                logger.warning("kafka producer did not close cleanly", exc_info=True)
            _producer = None
