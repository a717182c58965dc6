"""
Dramatiq worker infrastructure for background jobs.

Sets the broker for every worker module: Redis in deployments, dramatiq's
in-memory StubBroker when ``DRAMATIQ_BROKER=stub`` (tests, local runs).
"""
import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from app.config import settings

if settings.dramatiq_broker == "stub":
    broker = StubBroker()
    broker.emit_after("process_boot")
else:
    broker = RedisBroker(url=settings.redis_url)
dramatiq.set_broker(broker)
