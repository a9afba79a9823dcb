"""Perception layer - position sensor feed and detection"""

from .frames import CameraFrame, FeedFrame, FrameError, parse_frame
from .observer import PositionObserver, DetectionSlot, DEFAULT_TOLERANCE
from .feed import (
    FrameSource,
    QueueFrameSource,
    SerialFrameSource,
    SimulatedCamera,
    SensorFeedConsumer,
)

__all__ = [
    'CameraFrame', 'FeedFrame', 'FrameError', 'parse_frame',
    'PositionObserver', 'DetectionSlot', 'DEFAULT_TOLERANCE',
    'FrameSource', 'QueueFrameSource', 'SerialFrameSource',
    'SimulatedCamera', 'SensorFeedConsumer',
]
