import base64
import json
import os
import sys

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Ensure project root is on sys.path for `import zai_backend.*`
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(scope="session")
def rsa_key_pair():
    """(private_pem, public_pem) generated once per test session."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


@pytest.fixture
def service_account_info(rsa_key_pair):
    private_pem, _ = rsa_key_pair
    return {
        "type": "service_account",
        "project_id": "zai-test-project",
        "private_key_id": "0123456789abcdef",
        "private_key": private_pem,
        "client_email": "vertex-ai@zai-test-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
    }


@pytest.fixture
def service_account_b64(service_account_info):
    return base64.b64encode(json.dumps(service_account_info).encode("utf-8")).decode("ascii")
