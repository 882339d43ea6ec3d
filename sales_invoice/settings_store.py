"""Admin credential and app metadata, kept as a plaintext JSON blob."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from . import config

logger = logging.getLogger(__name__)


def default_config() -> Dict[str, Any]:
    return {
        "admin": {
            "password": config.DEFAULT_ADMIN_PASSWORD,
            "lastPasswordChange": datetime.now(timezone.utc).isoformat(),
        },
        "app": {"name": config.APP_NAME, "version": config.APP_VERSION},
    }


class ConfigStore:
    def __init__(self, path: str) -> None:
        self.path = path

    def initialize(self) -> bool:
        if os.path.exists(self.path):
            return False
        if self.save(default_config()):
            logger.info("Config initialized: %s", self.path)
            return True
        return False

    def read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Error reading config %s: %s", self.path, exc)
            return {"admin": {"password": config.DEFAULT_ADMIN_PASSWORD}}
        if not isinstance(data, dict) or not isinstance(data.get("admin"), dict):
            return {"admin": {"password": config.DEFAULT_ADMIN_PASSWORD}}
        return data

    def save(self, data: Dict[str, Any]) -> bool:
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
        except OSError as exc:
            logger.error("Error updating config %s: %s", self.path, exc)
            return False
        return True

    def verify_password(self, password: Any) -> bool:
        return isinstance(password, str) and password == self.read()["admin"].get("password")

    def change_password(self, current: Any, new: Any) -> Tuple[bool, str]:
        data = self.read()
        if not isinstance(current, str) or current != data["admin"].get("password"):
            return False, "Current password is incorrect"
        if not isinstance(new, str) or not new:
            return False, "New password must be a non-empty string"

        data["admin"]["password"] = new
        data["admin"]["lastPasswordChange"] = datetime.now(timezone.utc).isoformat()
        if not self.save(data):
            return False, "Error saving new password"
        logger.info("Admin password updated")
        return True, "Password updated successfully"
