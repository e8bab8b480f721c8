from dataclasses import dataclass
from typing import Dict


@dataclass
class AuthStorage:
    username: str
    token: str
    salt: str = ""
    client: str = "castplayer"
    api_version: str = "1.16.1"

    def query_params(self) -> Dict[str, str]:
        """Параметры сессии, которые сервер ждёт в query string при подключении сокета."""
        params = {
            "u": self.username,
            "t": self.token,
            "c": self.client,
            "v": self.api_version,
        }
        if self.salt:
            params["s"] = self.salt
        return params
