"""
Shared fixtures for Pacifica SDK tests
"""

import pytest

from pacifica_sdk.crypto.keys import resolve_key_material

# RFC 8032 section 7.1, test 1
RFC8032_SECRET_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
RFC8032_PUBLIC_HEX = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"
RFC8032_EMPTY_SIGNATURE_HEX = (
    "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e065224901555"
    "fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
)

FIXED_TIMESTAMP = 1700000000000


@pytest.fixture
def secret_hex():
    return RFC8032_SECRET_HEX


@pytest.fixture
def key_material():
    return resolve_key_material(RFC8032_SECRET_HEX)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIMESTAMP
