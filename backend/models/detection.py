from dataclasses import dataclass, field
from enum import Enum
import time


class RecordingDecision(str, Enum):
    NO_OP = "noop"
    START_RECORDING = "start_recording"
    STOP_RECORDING = "stop_recording"


@dataclass(frozen=True)
class DetectionSample:
    is_court: bool
    timestamp: float = field(default_factory=time.monotonic)
