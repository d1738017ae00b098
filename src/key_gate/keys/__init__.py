"""Key lifecycle engine: storage, generation, eligibility, expiry."""

from key_gate.keys.eligibility import EligibilityGuard
from key_gate.keys.generator import KeyGenerator
from key_gate.keys.manager import KeyLifecycleService, mask_key
from key_gate.keys.models import (
    Identity,
    IssuedKey,
    KeyConflict,
    KeyDatabase,
    KeyRecord,
    TaskClaim,
    TimeRemaining,
    ValidationResult,
)
from key_gate.keys.storage import KeyRecordStore
from key_gate.keys.sweeper import ExpirySweeper


__all__ = [
    "EligibilityGuard",
    "ExpirySweeper",
    "Identity",
    "IssuedKey",
    "KeyConflict",
    "KeyDatabase",
    "KeyGenerator",
    "KeyLifecycleService",
    "KeyRecord",
    "KeyRecordStore",
    "TaskClaim",
    "TimeRemaining",
    "ValidationResult",
    "mask_key",
]
