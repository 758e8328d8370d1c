"""
Secure storage for the agent's host credential.

The bearer token issued for this host is stored in the system keyring
when one is available, falling back to a Fernet-encrypted file in the
agent's state directory.
"""

import base64
import json
import logging
import os
import uuid
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

try:
    import keyring
    from keyring.errors import KeyringError
    KEYRING_AVAILABLE = True
except ImportError:
    KEYRING_AVAILABLE = False

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "statuspulse-agent"
KEYRING_USERNAME = "host-credential"
CREDS_FILE = "agent.credentials"
INSTALL_ID_FILE = "install.id"
SALT_SIZE = 16


def state_dir() -> Path:
    """Directory holding the agent's local state (STATUSPULSE_HOME overrides)."""
    override = os.getenv("STATUSPULSE_HOME")
    if override:
        return Path(override)
    return Path.home() / ".config" / "statuspulse"


def get_install_id() -> str:
    """
    Return the persistent id of this agent installation, creating it on
    first use. It keys the encrypted credentials file.
    """
    path = state_dir() / INSTALL_ID_FILE
    if path.exists():
        install_id = path.read_text().strip()
        if install_id:
            return install_id
    install_id = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(install_id)
    return install_id


def _get_encryption_key(salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=480000,
    )
    return base64.urlsafe_b64encode(kdf.derive(get_install_id().encode()))


def _use_keyring() -> bool:
    return KEYRING_AVAILABLE and not os.getenv("STATUSPULSE_NO_KEYRING")


def store_credentials(server_url: str, token: str):
    """Store the collector URL and host token."""
    creds = {"server_url": server_url, "token": token}

    if _use_keyring():
        try:
            keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, json.dumps(creds))
            return
        except KeyringError as e:
            logger.info(f"Keyring unavailable ({e}), storing credentials in encrypted file")

    salt = os.urandom(SALT_SIZE)
    encrypted = Fernet(_get_encryption_key(salt)).encrypt(json.dumps(creds).encode())
    path = state_dir() / CREDS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(salt + encrypted)
    path.chmod(0o600)


def load_credentials() -> dict | None:
    """Return {"server_url", "token"} or None if nothing is stored."""
    if _use_keyring():
        try:
            data = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
            if data:
                return json.loads(data)
        except KeyringError as e:
            logger.debug(f"Keyring lookup failed: {e}")

    path = state_dir() / CREDS_FILE
    if not path.exists():
        return None
    data = path.read_bytes()
    salt, encrypted = data[:SALT_SIZE], data[SALT_SIZE:]
    try:
        decrypted = Fernet(_get_encryption_key(salt)).decrypt(encrypted)
    except InvalidToken:
        logger.warning(f"Stored credentials at {path} could not be decrypted; ignoring them")
        return None
    return json.loads(decrypted)


def clear_credentials():
    if _use_keyring():
        try:
            keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        except KeyringError:
            pass
    path = state_dir() / CREDS_FILE
    if path.exists():
        path.unlink()


def is_registered() -> bool:
    creds = load_credentials()
    return bool(creds and creds.get("token"))
