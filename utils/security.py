import os
import base64
import re
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from eth_account import Account

HEX_KEY_PATTERN = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')


class SecurityManager:
    def __init__(self, encryption_key: str = None):
        # Используем ключ из переменных окружения
        self.encryption_key = encryption_key or os.getenv('ENCRYPTION_KEY')
        if not self.encryption_key:
            raise ValueError("ENCRYPTION_KEY is not set, cannot decrypt private keys")

        # Дополняем ключ до 32 байт если нужно
        if len(self.encryption_key) < 32:
            self.encryption_key = self.encryption_key.ljust(32, '0')
        elif len(self.encryption_key) > 32:
            self.encryption_key = self.encryption_key[:32]

        # Кодируем в base64 для Fernet
        key_b64 = base64.urlsafe_b64encode(self.encryption_key.encode())
        self.cipher_suite = Fernet(key_b64)

    def encrypt_private_key(self, private_key: str) -> str:
        """
        Шифрование приватного ключа
        """
        try:
            private_key = normalize_private_key(private_key)
            encrypted = self.cipher_suite.encrypt(private_key.encode())
            return base64.urlsafe_b64encode(encrypted).decode()
        except Exception as e:
            raise ValueError(f"Encryption failed: {e}")

    def decrypt_private_key(self, encrypted_key: str) -> str:
        """
        Дешифрование приватного ключа
        """
        try:
            encrypted_bytes = base64.urlsafe_b64decode(encrypted_key.encode())
            decrypted = self.cipher_suite.decrypt(encrypted_bytes)
        except InvalidToken:
            raise ValueError("Decryption failed: invalid encryption key")
        except Exception as e:
            raise ValueError(f"Decryption failed: {e}")
        return '0x' + normalize_private_key(decrypted.decode())


def normalize_private_key(private_key: str) -> str:
    """Нормализация формата приватного ключа (64 hex символа без 0x)"""
    private_key = private_key.strip()
    if not HEX_KEY_PATTERN.match(private_key):
        raise ValueError("Private key must be 64 hexadecimal characters")
    return private_key[2:] if private_key.startswith('0x') else private_key


def validate_private_key(private_key: str) -> bool:
    """
    Валидация приватного ключа
    """
    try:
        account = Account.from_key('0x' + normalize_private_key(private_key))
        return bool(account.address)
    except ValueError:
        return False


def resolve_private_key(raw: str, security_manager: Optional[SecurityManager] = None) -> str:
    """
    Строка из pk.txt: открытый hex-ключ или Fernet-токен.

    Зашифрованные ключи требуют ENCRYPTION_KEY; менеджер создается лениво.
    """
    raw = raw.strip()
    if HEX_KEY_PATTERN.match(raw):
        key = '0x' + normalize_private_key(raw)
    else:
        key = (security_manager or SecurityManager()).decrypt_private_key(raw)

    if not validate_private_key(key):
        raise ValueError("Invalid private key")
    return key
