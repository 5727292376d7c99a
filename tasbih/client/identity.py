import json
import os
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError

log = structlog.get_logger()


class DeviceProfile(BaseModel):
    """What one device remembers about its user.

    The name is self-declared and reused across sessions and counters. Two
    devices may claim the same name; the service then treats them as one
    participant.
    """

    participant_name: Optional[str] = None
    vibration_enabled: bool = True

    @property
    def is_identified(self):
        return bool(self.participant_name and self.participant_name.strip())


class ProfileStore:
    """Persists a DeviceProfile as a small JSON file."""

    def __init__(self, path):
        self.path = path

    def load(self):
        if not os.path.exists(self.path):
            return DeviceProfile()
        try:
            with open(self.path) as f:
                return DeviceProfile.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            log.warning("profile_unreadable", path=self.path, error=str(e))
            return DeviceProfile()

    def save(self, profile):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(profile.model_dump(), f)
        os.replace(tmp_path, self.path)

    def remember_name(self, name):
        profile = self.load()
        profile.participant_name = name.strip()
        self.save(profile)
        return profile

    def set_vibration(self, enabled):
        profile = self.load()
        profile.vibration_enabled = bool(enabled)
        self.save(profile)
        return profile
