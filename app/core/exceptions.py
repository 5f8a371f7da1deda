class DomainError(Exception):
    """Базовая ошибка домена"""


class DocumentValidationError(DomainError):
    """Некорректные входные данные"""


class NotFoundError(DomainError):
    """Документ не существует или не принадлежит пользователю"""


class ConflictError(DomainError):
    """Версия клиента устарела"""

    def __init__(self, message: str, server_version: int):
        super().__init__(message)
        self.server_version = server_version


class AuthenticationFailed(DomainError):
    """Тег AEAD не прошел проверку"""


class MalformedEnvelopeError(DomainError):
    """Неверная длина ключа, nonce или тега"""


class ConfigurationError(DomainError):
    """Шифрование не настроено"""


class SyncAbortedError(DomainError):
    """Транзакция синхронизации откатилась"""
