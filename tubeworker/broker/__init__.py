from tubeworker.broker.base import Broker, ReservedJob
from tubeworker.broker.beanstalk import BeanstalkBroker, BeanstalkReservedJob
from tubeworker.broker.memory import MemoryBroker, MemoryJobStatus, MemoryReservedJob

__all__ = [
    "BeanstalkBroker",
    "BeanstalkReservedJob",
    "Broker",
    "MemoryBroker",
    "MemoryJobStatus",
    "MemoryReservedJob",
    "ReservedJob",
]
