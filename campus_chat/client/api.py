"""HTTP client for the roster service's user directory."""
from typing import Dict, List

import requests

from .config import ROSTER_URL
from .models import DirectoryEntry
from .storage import get_token


class RosterError(RuntimeError):
    pass


class RosterClient:
    def __init__(self, base_url: str = ROSTER_URL):
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        token = get_token()
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def list_students(self) -> List[DirectoryEntry]:
        resp = requests.get(f"{self.base_url}/students/all", headers=self._headers(), timeout=10)
        resp.raise_for_status()
        data = resp.json()
        if not data.get("success") or not isinstance(data.get("students"), list):
            raise RosterError("Invalid response format from roster service")
        return [DirectoryEntry.from_roster(item) for item in data["students"]]
