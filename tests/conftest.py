import datetime as dt
import os

import pytest
from asn1crypto import core
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from prometheus_client import CollectorRegistry

from vomsinit.attributes import AttributeCertificate
from vomsinit.credential import Credential
from vomsinit.events import InitListeners
from vomsinit.metrics import MetricsRegistry
from vomsinit.proxy import X509ProxyGenerator
from vomsinit.validation import ValidationResult


def utcnow():
    return dt.datetime.now(dt.timezone.utc)


def _name(cn, org="Test Grid"):
    return x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def _issue(subject, subject_key, issuer_name, issuer_key, not_before, not_after, ca=False):
    builder = (
        x509.CertificateBuilder()
        .serial_number(x509.random_serial_number())
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(subject_key.public_key())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key, hashes.SHA256())


@pytest.fixture(scope="session")
def ca_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def user_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def proxy_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ca_cert(ca_key):
    now = utcnow()
    name = _name("Test CA")
    return _issue(name, ca_key, name, ca_key, now - dt.timedelta(days=1), now + dt.timedelta(days=3650), ca=True)


@pytest.fixture
def issue_user_cert(ca_cert, ca_key, user_key):
    """Factory issuing a user certificate valid for ``lifetime`` from now."""

    def _factory(lifetime=dt.timedelta(days=30), cn="Alice Example", not_before=None):
        now = utcnow()
        return _issue(_name(cn), user_key, ca_cert.subject, ca_key,
                      not_before or now - dt.timedelta(hours=1), now + lifetime)

    return _factory


@pytest.fixture
def user_cert(issue_user_cert):
    return issue_user_cert()


@pytest.fixture
def credential(user_cert, user_key):
    return Credential(chain=(user_cert,), private_key=user_key, source="test")


@pytest.fixture
def trust_dir(tmp_path, ca_cert):
    directory = tmp_path / "certificates"
    directory.mkdir()
    (directory / "ca.pem").write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    (directory / "ca.signing_policy").write_text("access_id_CA X509 '/O=Test Grid/CN=Test CA'\n")
    return str(directory)


@pytest.fixture
def write_pem_credential(tmp_path, user_cert, user_key):
    """Write the user credential as cert/key PEM files, optionally encrypting the key."""

    def _write(password=None, cert=None):
        cert_path = tmp_path / "usercert.pem"
        key_path = tmp_path / "userkey.pem"
        cert_path.write_bytes((cert or user_cert).public_bytes(serialization.Encoding.PEM))
        encryption = serialization.BestAvailableEncryption(password) if password \
            else serialization.NoEncryption()
        key_path.write_bytes(user_key.private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption))
        os.chmod(key_path, 0o400)
        return str(cert_path), str(key_path)

    return _write


@pytest.fixture
def generator(proxy_key):
    # Reuse one RSA key to keep tests fast
    return X509ProxyGenerator(key_factory=lambda size: proxy_key)


@pytest.fixture
def metrics():
    return MetricsRegistry(CollectorRegistry())


def make_ac(vo_name, payload=None):
    der = core.OctetString(payload or f"ac-{vo_name}".encode()).dump()
    return AttributeCertificate(vo_name=vo_name, der=der)


@pytest.fixture
def ac_factory():
    return make_ac


class RecordingValidator:
    def __init__(self, valid=True, errors=None):
        self.valid = valid
        self.errors = errors or []
        self.calls = []

    def validate(self, chain):
        self.calls.append(list(chain))
        return ValidationResult(valid=self.valid, errors=list(self.errors))


class FakeAttributeService:
    """Answers from a VO -> AttributeCertificate | None | Exception map and records calls."""

    def __init__(self, answers, calls):
        self.answers = answers
        self.calls = calls

    def request(self, credential, request, connect_timeout, read_timeout):
        self.calls.append((request, connect_timeout, read_timeout))
        answer = self.answers.get(request.vo_name)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeAttributeServiceFactory:
    def __init__(self, answers):
        self.answers = answers
        self.calls = []
        self.lookups = []

    def __call__(self, chain_validator, lookup, listeners):
        self.lookups.append(lookup)
        return FakeAttributeService(self.answers, self.calls)


class RecordingListeners(InitListeners):
    def __init__(self):
        self.events = []
        super().__init__(
            credential_load=self._record("credential_load"),
            store_update=self._record("store_update"),
            validation_error=self._record("validation_error"),
            validation_result=self._record("validation_result"),
            voms_trust_store=self._record("voms_trust_store"),
            server_info_store=self._record("server_info_store"),
            request=self._record("request"),
            protocol=self._record("protocol"),
            proxy_created=self._record("proxy_created"),
        )

    def _record(self, channel):
        def handler(*args):
            self.events.append((channel, args))
        return handler

    def on(self, channel):
        return [args for name, args in self.events if name == channel]


@pytest.fixture
def validator():
    return RecordingValidator()


@pytest.fixture
def listeners():
    return RecordingListeners()


@pytest.fixture
def attribute_services():
    return FakeAttributeServiceFactory
