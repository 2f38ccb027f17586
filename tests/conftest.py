from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from bb84_platform.backend.main import create_app
from bb84_platform.backend.session_manager import SessionManager
from bb84_sim import QuantumBit, generate_bit_sequence


@pytest.fixture
def manager() -> SessionManager:
    return SessionManager(threshold=0.11, strict_qber_gate=True, intercept_rate=1.0)


@pytest.fixture
def client(manager: SessionManager) -> Iterator[TestClient]:
    # One portal for every request and socket, so they share an event loop
    with TestClient(create_app(session_manager=manager)) as c:
        yield c


@pytest.fixture
def alice_bits() -> List[QuantumBit]:
    return generate_bit_sequence(20)
