import pytest

from healthkube.errors import ParseError
from healthkube.models.descriptors import TargetSpec
from healthkube.services.target_resolver import expand_scopes, parse_target, resolve_targets


def test_context_with_namespaces():
    spec = parse_target("prod:ns1,ns2")
    assert spec == TargetSpec(context="prod", namespaces=frozenset({"ns1", "ns2"}))
    assert spec.all_namespaces is False


def test_context_only_means_all_namespaces():
    spec = parse_target("prod")
    assert spec.context == "prod"
    assert spec.namespaces == frozenset()
    assert spec.all_namespaces is True
    assert spec.scopes() == [("prod", None)]


@pytest.mark.parametrize("raw", ["prod:", "", "   ", ":batch", "prod:ns1,,ns2", "prod:ns1,", "prod:Batch", "prod:ns_1", "my context", "prod,stage"])
def test_malformed_targets_raise_parse_error(raw):
    with pytest.raises(ParseError):
        parse_target(raw)


def test_namespace_longer_than_63_chars_rejected():
    with pytest.raises(ParseError):
        parse_target("prod:" + "a" * 64)


def test_context_names_with_separators_accepted():
    assert parse_target("gke_project_europe-west1_main").context == "gke_project_europe-west1_main"
    assert parse_target("admin@kind-dev:batch").context == "admin@kind-dev"


def test_resolve_keeps_order_and_duplicates():
    targets = resolve_targets(["stage:etl", "prod:batch", "stage:etl"])
    assert [t.context for t in targets] == ["stage", "prod", "stage"]
    assert expand_scopes(targets) == [("stage", "etl"), ("prod", "batch"), ("stage", "etl")]


def test_resolve_requires_a_target():
    with pytest.raises(ParseError):
        resolve_targets([])


def test_first_bad_target_aborts_resolution():
    with pytest.raises(ParseError) as exc:
        resolve_targets(["prod:batch", "stage:"])
    assert exc.value.target == "stage:"
