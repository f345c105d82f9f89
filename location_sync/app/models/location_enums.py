"""
Location sync enumerations.
"""

import enum


class ConflictStatus(str, enum.Enum):
    """Conflict lifecycle. RESOLVED and REJECTED are terminal."""
    PENDING = "PENDING"  # Awaiting operator decision
    RESOLVED = "RESOLVED"  # Winning sample materialized
    REJECTED = "REJECTED"  # Discarded, no sample created


class ResolutionChoice(str, enum.Enum):
    """Which side of a conflict becomes the stored sample."""
    CLIENT = "CLIENT"  # Incoming payload from the device
    SERVER = "SERVER"  # Snapshot of the already-stored row
    MANUAL = "MANUAL"  # Operator-supplied payload


class TaskType(str, enum.Enum):
    """Kind of work a geofence zone represents."""
    DISTRIBUTION = "DISTRIBUTION"
    TERMINAL_WORK = "TERMINAL_WORK"
    DRIVING = "DRIVING"
    MOVING = "MOVING"
    LOADING = "LOADING"
    UNLOADING = "UNLOADING"
    SMART = "SMART"
