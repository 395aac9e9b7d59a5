"""Credential persistence.

One JSON file per identity (profile name) under a config directory. Only
the client registration and the long-lived refresh token are stored;
access tokens never touch disk.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from auth.errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    """Client registration plus the optional refresh token."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    refresh_token: str | None = None

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)


def load_config(path: str | Path) -> Credential:
    """Read a credential from a JSON config file.

    A missing file yields an empty credential. Unknown keys are ignored and
    empty strings are normalised so that "" never counts as a refresh token.

    Raises:
        PersistenceError: If the file exists but cannot be read or parsed.
    """
    config_file = Path(path)
    if not config_file.exists():
        return Credential()

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Failed to read config {config_file}: {e}", original_error=e)

    if not isinstance(data, dict):
        raise PersistenceError(f"Config {config_file} is not a JSON object")

    return Credential(
        client_id=data.get("client_id") or "",
        client_secret=data.get("client_secret") or "",
        redirect_uri=data.get("redirect_uri") or "",
        refresh_token=data.get("refresh_token") or None,
    )


class CredentialStore:
    """Loads and saves credentials keyed by identity."""

    def __init__(self, config_dir: str | Path) -> None:
        self.config_dir = Path(config_dir).expanduser()

    def path_for(self, identity: str) -> Path:
        return self.config_dir / f"{identity}.json"

    def load(self, identity: str) -> Credential:
        return load_config(self.path_for(identity))

    def save(self, identity: str, credential: Credential) -> None:
        """Write the credential for identity.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """
        config_file = self.path_for(identity)
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            config_file.write_text(json.dumps(asdict(credential), indent=2), encoding="utf-8")
            # Holds the client secret and refresh token
            config_file.chmod(0o600)
        except OSError as e:
            raise PersistenceError(f"Failed to save config {config_file}: {e}", original_error=e)
        logger.info("Saved credential for '%s' to %s", identity, config_file)
