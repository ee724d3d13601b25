"""Security manager for encrypted secret storage in the system keyring."""

import base64
import secrets
from pathlib import Path
from typing import Optional

import keyring
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from keyring.errors import PasswordDeleteError

from ..utils.exceptions import SecurityError
from ..utils.logging_config import get_security_logger

KEYRING_SERVICE = "property-minutes"
MASTER_KEY_NAME = "master_key"


class SecurityManager:
    """Keeps secrets Fernet-encrypted in the system keyring.

    The Fernet key is derived from a random master key held in the keyring
    and a salt file next to the configuration document.
    """

    def __init__(self, salt_path: Optional[Path] = None):
        self.security_logger = get_security_logger()
        self.salt_path = salt_path or Path.home() / ".property_minutes" / "salt"
        self._cipher_suite: Optional[Fernet] = None
        self._keyring_service = KEYRING_SERVICE
        self._initialize_encryption()

    def _initialize_encryption(self) -> None:
        try:
            master_key = self._get_or_create_master_key()

            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self._get_salt(),
                iterations=100000,
            )
            key = base64.urlsafe_b64encode(kdf.derive(master_key))
            self._cipher_suite = Fernet(key)

            self.security_logger.log_security_event("encryption_initialized")

        except Exception as e:
            self.security_logger.log_security_event(
                "encryption_initialization_failed", severity="ERROR", error=str(e)
            )
            raise SecurityError(f"Failed to initialize encryption: {e}")

    def _get_or_create_master_key(self) -> bytes:
        stored_key = keyring.get_password(self._keyring_service, MASTER_KEY_NAME)
        if stored_key:
            return base64.b64decode(stored_key)

        master_key = secrets.token_bytes(32)
        keyring.set_password(
            self._keyring_service, MASTER_KEY_NAME, base64.b64encode(master_key).decode()
        )
        self.security_logger.log_security_event("master_key_created")
        return master_key

    def _get_salt(self) -> bytes:
        if self.salt_path.exists():
            return self.salt_path.read_bytes()

        salt = secrets.token_bytes(32)
        self.salt_path.parent.mkdir(parents=True, exist_ok=True)
        self.salt_path.write_bytes(salt)
        self.salt_path.chmod(0o600)
        return salt

    def encrypt_credential(self, credential: str) -> str:
        if not self._cipher_suite:
            raise SecurityError("Encryption not initialized")

        try:
            encrypted_bytes = self._cipher_suite.encrypt(credential.encode())
            return base64.b64encode(encrypted_bytes).decode()
        except Exception as e:
            raise SecurityError(f"Failed to encrypt credential: {e}")

    def decrypt_credential(self, encrypted_credential: str) -> str:
        if not self._cipher_suite:
            raise SecurityError("Encryption not initialized")

        try:
            encrypted_bytes = base64.b64decode(encrypted_credential)
            return self._cipher_suite.decrypt(encrypted_bytes).decode()
        except Exception as e:
            raise SecurityError(f"Failed to decrypt credential: {e}")

    def store_credential(self, service: str, name: str, credential: str) -> None:
        """Encrypt ``credential`` and store it under ``service:name``."""
        try:
            keyring.set_password(
                self._keyring_service, f"{service}:{name}", self.encrypt_credential(credential)
            )
        except SecurityError:
            raise
        except Exception as e:
            raise SecurityError(f"Failed to store credential {service}:{name}: {e}")

        self.security_logger.log_security_event("credential_stored", service=service, name=name)

    def retrieve_credential(self, service: str, name: str) -> Optional[str]:
        try:
            encrypted_credential = keyring.get_password(self._keyring_service, f"{service}:{name}")
        except Exception as e:
            raise SecurityError(f"Failed to retrieve credential {service}:{name}: {e}")

        if not encrypted_credential:
            return None
        return self.decrypt_credential(encrypted_credential)

    def delete_credential(self, service: str, name: str) -> None:
        """Remove a stored credential. Deleting a missing one is a no-op."""
        try:
            keyring.delete_password(self._keyring_service, f"{service}:{name}")
        except PasswordDeleteError:
            return
        except Exception as e:
            raise SecurityError(f"Failed to delete credential {service}:{name}: {e}")

        self.security_logger.log_security_event("credential_deleted", service=service, name=name)
