import pytest
from prometheus_client import CollectorRegistry

from vomsinit.attributes import (
    AttributeAcquisitionLoop,
    AttributeCertificate,
    DefaultVomsesLookup,
    ExplicitVomsesLookup,
    order_fqans,
    parse_voms_commands,
    vomses_lookup_for,
)
from vomsinit.config import AcquisitionMode, InitParams
from vomsinit.errors import ACValidationError, AttributeAcquisitionError
from vomsinit.metrics import MetricsRegistry
from vomsinit.validation import ValidationResult


def test_parse_commands_groups_by_vo_in_first_appearance_order():
    parsed = parse_voms_commands(["cms", "atlas:/atlas/Role=pilot", "cms:/cms/Role=lcgadmin", "atlas"])
    assert list(parsed) == ["cms", "atlas"]
    assert parsed["cms"] == ["/cms/Role=lcgadmin"]
    assert parsed["atlas"] == ["/atlas/Role=pilot"]


def test_parse_commands_splits_on_first_colon():
    assert parse_voms_commands(["vo:/vo/Role=a:b"])["vo"] == ["/vo/Role=a:b"]


def test_parse_commands_rejects_missing_vo():
    with pytest.raises(ValueError):
        parse_voms_commands([":/atlas"])


def test_order_fqans_dedupes_preferred_first():
    assert order_fqans(["/A", "/B"], ["/B", "/C"]) == ["/A", "/B", "/C"]
    assert order_fqans([], ["/x", "/x"]) == ["/x"]


def test_build_requests_carry_run_settings():
    params = InitParams(voms_commands=["atlas:/atlas/Role=pilot"], fqan_order=["/atlas"],
                        targets=["host.example.org"], ac_lifetime=3600)
    [request] = AttributeAcquisitionLoop(params).build_requests()
    assert request.vo_name == "atlas"
    assert request.fqans == ("/atlas", "/atlas/Role=pilot")
    assert request.targets == ("host.example.org",)
    assert request.lifetime == 3600


def test_best_effort_tolerates_absent_vo(credential, validator, listeners, attribute_services,
                                         ac_factory, metrics):
    services = attribute_services({"vo_x": None, "vo_y": ac_factory("vo_y")})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["vo_x", "vo_y"]), services, listeners,
                                    metrics=metrics)
    acs = loop.acquire(credential, validator)
    assert [ac.vo_name for ac in acs] == ["vo_y"]
    assert [call[0].vo_name for call in services.calls] == ["vo_x", "vo_y"]
    assert any("vo_x" in event.message for (event,) in listeners.on("request"))


def test_best_effort_tolerates_service_exception(credential, validator, attribute_services, ac_factory):
    registry = CollectorRegistry()
    services = attribute_services({"vo_x": ConnectionError("refused"), "vo_y": ac_factory("vo_y")})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["vo_x", "vo_y"]), services,
                                    metrics=MetricsRegistry(registry))
    assert len(loop.acquire(credential, validator)) == 1
    assert registry.get_sample_value("vomsinit_ac_requests_total", {"outcome": "error"}) == 1
    assert registry.get_sample_value("vomsinit_ac_requests_total", {"outcome": "success"}) == 1


def test_all_absent_is_an_error(credential, validator, attribute_services, metrics):
    services = attribute_services({})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["vo_x", "vo_y"]), services, metrics=metrics)
    with pytest.raises(AttributeAcquisitionError, match="could not be fulfilled"):
        loop.acquire(credential, validator)
    assert len(services.calls) == 2


def test_fail_fast_stops_at_first_absent(credential, validator, attribute_services, ac_factory, metrics):
    services = attribute_services({"vo_x": None, "vo_y": ac_factory("vo_y")})
    params = InitParams(voms_commands=["vo_x", "vo_y"], acquisition_mode=AcquisitionMode.FAIL_FAST)
    loop = AttributeAcquisitionLoop(params, services, metrics=metrics)
    with pytest.raises(AttributeAcquisitionError, match="vo_x"):
        loop.acquire(credential, validator)
    assert len(services.calls) == 1


def test_timeouts_passed_as_seconds(credential, validator, attribute_services, ac_factory, metrics):
    services = attribute_services({"atlas": ac_factory("atlas")})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"], timeout=30), services, metrics=metrics)
    loop.acquire(credential, validator)
    [(_, connect_timeout, read_timeout)] = services.calls
    assert connect_timeout == read_timeout == 30.0
    assert isinstance(connect_timeout, float)


def test_missing_service_factory(credential, validator, metrics):
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"]), metrics=metrics)
    with pytest.raises(AttributeAcquisitionError):
        loop.acquire(credential, validator)


def test_lookup_strategy_follows_locations(credential, validator, attribute_services, ac_factory, metrics):
    services = attribute_services({"atlas": ac_factory("atlas")})
    explicit = InitParams(voms_commands=["atlas"], vomses_locations=["/opt/vomses"])
    AttributeAcquisitionLoop(explicit, services, metrics=metrics).acquire(credential, validator)
    AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"]), services, environ={},
                             metrics=metrics).acquire(credential, validator)
    first, second = services.lookups
    assert isinstance(first, ExplicitVomsesLookup)
    assert first.search_paths() == ["/opt/vomses"]
    assert isinstance(second, DefaultVomsesLookup)


def test_default_lookup_paths(tmp_path):
    lookup = DefaultVomsesLookup(home=str(tmp_path), environ={"VOMS_USERCONF": "/custom/vomses"})
    assert lookup.search_paths() == [
        "/custom/vomses",
        str(tmp_path / ".voms" / "vomses"),
        str(tmp_path / ".glite" / "vomses"),
        "/etc/vomses",
        "/etc/grid-security/vomses",
    ]
    assert isinstance(vomses_lookup_for(None, {}), DefaultVomsesLookup)


class _ACValidator:
    def __init__(self, result):
        self.result = result
        self.seen = []

    def validate(self, certificates):
        self.seen.extend(certificates)
        return self.result


def test_verify_requires_validator_factory(validator, ac_factory):
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"], verify_ac=True))
    with pytest.raises(ACValidationError):
        loop.verify([ac_factory("atlas")], validator, None)


def test_verify_rejects_invalid_certificates(validator, ac_factory, listeners):
    ac_validator = _ACValidator(ValidationResult(valid=False, errors=["signature mismatch"]))
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"]), listeners=listeners,
                                    environ={"X509_VOMS_DIR": "/opt/vomsdir"})
    seen_dirs = []

    def factory(voms_dir, chain_validator, listeners):
        seen_dirs.append(voms_dir)
        return ac_validator

    with pytest.raises(ACValidationError, match="signature mismatch"):
        loop.verify([ac_factory("atlas")], validator, factory)
    assert seen_dirs == ["/opt/vomsdir"]
    assert listeners.on("voms_trust_store")


def test_verify_returns_valid_certificates(validator, ac_factory):
    acs = [ac_factory("atlas"), ac_factory("cms")]
    ac_validator = _ACValidator(ValidationResult(valid=True))
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas", "cms"]), environ={})
    assert loop.verify(acs, validator, lambda d, c, l: ac_validator) == acs
    assert ac_validator.seen == acs


def test_empty_attribute_certificate_rejected():
    with pytest.raises(ValueError):
        AttributeCertificate(vo_name="atlas", der=b"")


class _UnreachableVomses:
    """Service factory that cannot set up a service for the listed VOs."""

    def __init__(self, broken, answers):
        self.broken = broken
        self.answers = answers
        self.built = 0

    def __call__(self, chain_validator, lookup, listeners):
        self.built += 1
        if self.built in self.broken:
            raise ConnectionError("vomses unreadable")
        vo_name = list(self.answers)[self.built - 1]
        answer = self.answers[vo_name]

        class _Service:
            def request(self, credential, request, connect_timeout, read_timeout):
                return answer

        return _Service()


def test_best_effort_tolerates_service_setup_failure(credential, validator, ac_factory, listeners, metrics):
    factory = _UnreachableVomses({1}, {"atlas": None, "cms": ac_factory("cms")})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas", "cms"]), factory, listeners,
                                    metrics=metrics)
    assert [ac.vo_name for ac in loop.acquire(credential, validator)] == ["cms"]
    assert any("vomses unreadable" in event.message for (event,) in listeners.on("request"))


def test_fail_fast_on_service_setup_failure(credential, validator, ac_factory, metrics):
    factory = _UnreachableVomses({1}, {"atlas": None, "cms": ac_factory("cms")})
    params = InitParams(voms_commands=["atlas", "cms"], acquisition_mode=AcquisitionMode.FAIL_FAST)
    with pytest.raises(AttributeAcquisitionError, match="vomses unreadable"):
        AttributeAcquisitionLoop(params, factory, metrics=metrics).acquire(credential, validator)
    assert factory.built == 1


def test_fail_fast_on_service_exception(credential, validator, attribute_services, ac_factory, metrics):
    services = attribute_services({"vo_x": TimeoutError("read timed out"), "vo_y": ac_factory("vo_y")})
    params = InitParams(voms_commands=["vo_x", "vo_y"], acquisition_mode=AcquisitionMode.FAIL_FAST)
    with pytest.raises(AttributeAcquisitionError, match="read timed out") as excinfo:
        AttributeAcquisitionLoop(params, services, metrics=metrics).acquire(credential, validator)
    assert isinstance(excinfo.value.cause, TimeoutError)
    assert len(services.calls) == 1


def test_malformed_command_is_an_acquisition_error(credential, validator, attribute_services, metrics):
    services = attribute_services({})
    loop = AttributeAcquisitionLoop(InitParams(voms_commands=[":/atlas"]), services, metrics=metrics)
    with pytest.raises(AttributeAcquisitionError, match="missing VO name"):
        loop.acquire(credential, validator)
    assert services.calls == []


def test_verify_wraps_validator_exception(validator, ac_factory):
    class Broken:
        def validate(self, certificates):
            raise OSError("vomsdir unreadable")

    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"]), environ={})
    with pytest.raises(ACValidationError, match="vomsdir unreadable"):
        loop.verify([ac_factory("atlas")], validator, lambda d, c, l: Broken())


def test_verify_wraps_validator_factory_exception(validator, ac_factory):
    def factory(voms_dir, chain_validator, listeners):
        raise FileNotFoundError(voms_dir)

    loop = AttributeAcquisitionLoop(InitParams(voms_commands=["atlas"]), environ={"X509_VOMS_DIR": "/nope"})
    with pytest.raises(ACValidationError, match="/nope"):
        loop.verify([ac_factory("atlas")], validator, factory)
