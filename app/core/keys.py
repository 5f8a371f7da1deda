import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.encryption import KEY_SIZE
from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class KeyManager:
    """Детерминированная выдача пользовательских ключей.

    Ключ = PBKDF2-SHA256(master_secret || user_id, salt). Сами ключи нигде
    не сохраняются и всегда выводятся заново из мастер-секрета.

    Каждый мастер-секрет образует эпоху (1, 2, ...). Новые данные шифруются
    ключом текущей эпохи, старые расшифровываются ключом той эпохи, номер
    которой записан рядом с шифртекстом.
    """

    def __init__(
        self,
        master_secret: Optional[str],
        salt: str,
        iterations: int = 100_000,
        previous_secrets: Optional[List[str]] = None,
        rotation_interval: timedelta = timedelta(days=30),
        secret_loader: Optional[Callable[[], Optional[str]]] = None
    ):
        self._secrets: List[str] = list(previous_secrets or [])
        if master_secret:
            self._secrets.append(master_secret)
        self._salt = salt.encode("utf-8")
        self._iterations = iterations
        self._cache: Dict[Tuple[int, str], bytes] = {}
        self.rotation_interval = rotation_interval
        self._secret_loader = secret_loader
        self.rotated_at = datetime.utcnow()

        if self._secrets:
            logger.info(f"Key manager initialised at epoch {self.current_epoch}")
        else:
            logger.error("No master secret configured, encrypted content is unavailable")

    @property
    def is_configured(self) -> bool:
        return bool(self._secrets)

    @property
    def current_epoch(self) -> int:
        """Номер текущей эпохи; 0 если секрет не настроен"""
        return len(self._secrets)

    async def derive_user_key(self, user_id: str, epoch: Optional[int] = None) -> bytes:
        """Ключ пользователя для указанной (по умолчанию текущей) эпохи"""
        epoch = self._resolve_epoch(epoch)
        cache_key = (epoch, user_id)

        key = self._cache.get(cache_key)
        if key is None:
            key = await asyncio.to_thread(self._derive, self._secrets[epoch - 1], user_id)
            self._cache[cache_key] = key
        return key

    def rotate(self, new_secret: str) -> int:
        """Добавление новой эпохи; ключи прошлых эпох остаются выводимыми"""
        if not new_secret:
            raise ConfigurationError("Cannot rotate to an empty master secret")

        self._secrets.append(new_secret)
        self.rotated_at = datetime.utcnow()
        logger.info(f"Master secret rotated, current epoch is {self.current_epoch}")
        return self.current_epoch

    def reload(self) -> bool:
        """Перечитывание мастер-секрета; ротация только если он изменился"""
        if self._secret_loader is None:
            return False

        secret = self._secret_loader()
        if not secret:
            logger.warning("Master secret reload returned nothing, keeping current epoch")
            return False
        if self._secrets and secret == self._secrets[-1]:
            self.rotated_at = datetime.utcnow()
            return False

        self.rotate(secret)
        return True

    def rotation_due(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return now - self.rotated_at >= self.rotation_interval

    async def run_rotation(self, check_every: float = 3600.0) -> None:
        """Фоновая задача периодической ротации"""
        while True:
            await asyncio.sleep(check_every)
            if self.rotation_due():
                try:
                    self.reload()
                except ConfigurationError as e:
                    logger.error(f"Key rotation failed: {e}")

    def _resolve_epoch(self, epoch: Optional[int]) -> int:
        if not self._secrets:
            raise ConfigurationError("Encryption master secret is not configured")
        if epoch is None:
            return self.current_epoch
        if epoch < 1 or epoch > self.current_epoch:
            raise ConfigurationError(f"Unknown key epoch {epoch}")
        return epoch

    def _derive(self, secret: str, user_id: str) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=self._salt,
            iterations=self._iterations
        )
        return kdf.derive(f"{secret}{user_id}".encode("utf-8"))
