"""
Structured logging for the conveyor inspection sequencer.

Prefixes:
  ⚡ CRITICAL - Errors, failures
  ⚠️  WARN     - Warnings, unexpected behavior
  ✓  OK       - Success confirmations
  ⇉  BELT     - Conveyor commands
  🔄 SEQ      - Sequence state transitions
  ⏱  WAIT     - Reachability waits and timed holds
  ⬡  BUS      - Raw serial I/O
  👁  SENSOR   - Position observations
  ✚  DIAG     - Passive diagnostics
"""

import threading
import time
from enum import Enum
from typing import Dict, Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    INFO = "ℹ  INFO    "
    BELT = "⇉  BELT    "
    SEQ = "🔄 SEQ     "
    WAIT = "⏱  WAIT    "
    BUS = "⬡  BUS     "
    SENSOR = "👁  SENSOR  "
    DIAG = "✚  DIAG    "


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    print(line)


# Last emission time per throttle key (monotonic seconds)
_throttle_marks: Dict[str, float] = {}
_throttle_lock = threading.Lock()


def log_throttled(key: str, period: float, level: LogLevel, message: str,
                  data: Optional[dict] = None) -> bool:
    """
    Log at most once every `period` seconds for a given key.

    Returns True if the line was emitted.
    """
    now = time.monotonic()
    with _throttle_lock:
        last = _throttle_marks.get(key)
        if last is not None and (now - last) < period:
            return False
        _throttle_marks[key] = now
    log(level, message, data)
    return True


def reset_throttle() -> None:
    """Forget all throttle marks (tests)."""
    with _throttle_lock:
        _throttle_marks.clear()


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)

def log_belt(msg: str, data: Optional[dict] = None):
    log(LogLevel.BELT, msg, data)

def log_seq(msg: str, data: Optional[dict] = None):
    log(LogLevel.SEQ, msg, data)

def log_wait(msg: str, data: Optional[dict] = None):
    log(LogLevel.WAIT, msg, data)

def log_bus(direction: str, data: str):
    """Log serial I/O. direction is '>>>' (send) or '<<<' (recv)"""
    log(LogLevel.BUS, f"{direction} {data}")

def log_sensor(msg: str, data: Optional[dict] = None):
    log(LogLevel.SENSOR, msg, data)

def log_diag(msg: str, data: Optional[dict] = None):
    log(LogLevel.DIAG, msg, data)
