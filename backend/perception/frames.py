"""
Sensor feed frames - typed views of the newline-delimited JSON feed.

Each line is one frame: {"topic": "<name>", ...topic fields}. Unknown
topics are kept as a bare FeedFrame so the consumer can skip them.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError


CAMERA_TOPIC = "logical_camera"


class FrameError(ValueError):
    """Raised when a feed line is not a valid frame"""
    pass


class FeedFrame(BaseModel):
    """Base for every frame on the feed."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    topic: str


# === Position sensor ===

class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Pose(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: Point = Field(default_factory=Point)


class DetectedModel(BaseModel):
    """One object record inside a camera frame."""
    model_config = ConfigDict(frozen=True)

    type: str = ""
    pose: Pose = Field(default_factory=Pose)


class CameraFrame(FeedFrame):
    """Logical camera image: zero or more detected objects."""
    topic: str = CAMERA_TOPIC
    models: List[DetectedModel] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.models

    @classmethod
    def at(cls, *coordinates: float) -> "CameraFrame":
        """Frame with one model per coordinate (z axis), in order."""
        return cls(models=[
            DetectedModel(type="shipping_box", pose=Pose(position=Point(z=z)))
            for z in coordinates
        ])


# === Diagnostics ===

class ScoreFrame(FeedFrame):
    data: float


class CompetitionStateFrame(FeedFrame):
    data: str


class OrderFrame(FeedFrame):
    order_id: str
    shipments: List[dict] = Field(default_factory=list)


class JointStateFrame(FeedFrame):
    name: List[str] = Field(default_factory=list)
    position: List[float] = Field(default_factory=list)


class BreakBeamFrame(FeedFrame):
    object_detected: bool


class RangeFrame(FeedFrame):
    range: float
    max_range: float


class LaserScanFrame(FeedFrame):
    # null marks a beam with no return
    ranges: List[Optional[float]] = Field(default_factory=list)


class DroneFrame(FeedFrame):
    data: str = ""


TOPIC_MODELS: Dict[str, Type[FeedFrame]] = {
    CAMERA_TOPIC: CameraFrame,
    "current_score": ScoreFrame,
    "competition_state": CompetitionStateFrame,
    "orders": OrderFrame,
    "joint_states": JointStateFrame,
    "break_beam": BreakBeamFrame,
    "proximity": RangeFrame,
    "laser_profiler": LaserScanFrame,
    "drone": DroneFrame,
}


def parse_frame(line: str) -> FeedFrame:
    """
    Parse one feed line into its typed frame.

    Raises FrameError on malformed JSON, a missing topic, or fields that
    do not match the topic's schema.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise FrameError(f"Malformed frame: {e}") from e

    if not isinstance(data, dict) or "topic" not in data:
        raise FrameError("Frame has no topic")

    model = TOPIC_MODELS.get(data["topic"], FeedFrame)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FrameError(f"Invalid {data['topic']} frame: {e}") from e
