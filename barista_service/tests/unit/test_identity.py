from dataclasses import FrozenInstanceError

import pytest

from barista_service.app.core.identity import WorkerIdentity


class TestWorkerIdentity:
    def test_value_is_prefix_plus_token(self):
        identity = WorkerIdentity(prefix="springbucks-", token="abc123")

        assert identity.value == "springbucks-abc123"
        assert str(identity) == "springbucks-abc123"

    def test_generate_uses_prefix_and_random_token(self):
        first = WorkerIdentity.generate("springbucks-")
        second = WorkerIdentity.generate("springbucks-")

        assert first.value.startswith("springbucks-")
        assert len(first.token) == 32
        assert first != second

    def test_identity_is_immutable(self):
        identity = WorkerIdentity.generate("springbucks-")

        with pytest.raises(FrozenInstanceError):
            identity.token = "other"  # type: ignore[misc]
