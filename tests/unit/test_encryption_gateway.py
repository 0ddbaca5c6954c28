from __future__ import annotations

import pytest

from matrix_pairing.application.ports.encryption_gateway_port import EncryptionUnavailableError
from matrix_pairing.infrastructure.matrix.encryption_gateway import PlaintextOnlyEncryptionGateway


@pytest.mark.asyncio
async def test_plaintext_gateway_declines_encryption() -> None:
    gateway = PlaintextOnlyEncryptionGateway()

    enabled = await gateway.enable_encryption(room_id="!r:example.org", user_id="@a:example.org")

    assert enabled is False


@pytest.mark.asyncio
async def test_plaintext_gateway_refuses_encrypted_send() -> None:
    gateway = PlaintextOnlyEncryptionGateway()

    with pytest.raises(EncryptionUnavailableError, match="!r:example.org"):
        await gateway.send_encrypted(room_id="!r:example.org", content={"body": "hi"})
