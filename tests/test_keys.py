"""Тесты выдачи пользовательских ключей и ротации мастер-секрета."""
from datetime import datetime, timedelta

import pytest

from app.core.encryption import KEY_SIZE
from app.core.exceptions import ConfigurationError
from app.core.keys import KeyManager


def make_manager(**kwargs):
    params = {"master_secret": "secret-1", "salt": "salt", "iterations": 1000}
    params.update(kwargs)
    return KeyManager(**params)


class TestDerivation:
    """Детерминированная деривация PBKDF2"""

    async def test_key_length(self):
        key = await make_manager().derive_user_key("alice")
        assert len(key) == KEY_SIZE

    async def test_deterministic_across_instances(self):
        first = await make_manager().derive_user_key("alice")
        second = await make_manager().derive_user_key("alice")

        assert first == second

    async def test_distinct_per_user(self):
        manager = make_manager()

        assert await manager.derive_user_key("alice") != await manager.derive_user_key("bob")

    async def test_distinct_per_secret(self):
        first = await make_manager().derive_user_key("alice")
        second = await make_manager(master_secret="secret-2").derive_user_key("alice")

        assert first != second

    async def test_cached(self, monkeypatch):
        manager = make_manager()
        calls = []
        original = manager._derive

        def counting(secret, user_id):
            calls.append(user_id)
            return original(secret, user_id)

        monkeypatch.setattr(manager, "_derive", counting)

        await manager.derive_user_key("alice")
        await manager.derive_user_key("alice")

        assert calls == ["alice"]

    async def test_not_configured(self):
        manager = KeyManager(master_secret=None, salt="salt", iterations=1000)

        assert not manager.is_configured
        assert manager.current_epoch == 0
        with pytest.raises(ConfigurationError):
            await manager.derive_user_key("alice")


class TestRotation:
    """Эпохи ключей"""

    async def test_rotate_keeps_old_epochs(self):
        manager = make_manager()
        old_key = await manager.derive_user_key("alice")

        epoch = manager.rotate("secret-2")

        assert epoch == 2
        assert await manager.derive_user_key("alice", 1) == old_key
        assert await manager.derive_user_key("alice") != old_key

    async def test_previous_secrets_form_earlier_epochs(self):
        rotated = make_manager()
        rotated.rotate("secret-2")
        restarted = make_manager(master_secret="secret-2", previous_secrets=["secret-1"])

        assert restarted.current_epoch == 2
        assert await restarted.derive_user_key("alice", 1) == await rotated.derive_user_key("alice", 1)
        assert await restarted.derive_user_key("alice", 2) == await rotated.derive_user_key("alice", 2)

    async def test_unknown_epoch(self):
        manager = make_manager()

        with pytest.raises(ConfigurationError):
            await manager.derive_user_key("alice", 5)

    def test_rotate_to_empty_secret(self):
        with pytest.raises(ConfigurationError):
            make_manager().rotate("")

    def test_reload_rotates_only_on_change(self):
        secrets = iter(["secret-1", "secret-2"])
        manager = make_manager(secret_loader=lambda: next(secrets))

        assert manager.reload() is False
        assert manager.current_epoch == 1
        assert manager.reload() is True
        assert manager.current_epoch == 2

    def test_reload_without_loader(self):
        assert make_manager().reload() is False

    def test_rotation_due(self):
        manager = make_manager(rotation_interval=timedelta(days=30))

        assert not manager.rotation_due()
        assert manager.rotation_due(datetime.utcnow() + timedelta(days=31))
