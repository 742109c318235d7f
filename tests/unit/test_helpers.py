"""Unit tests for quantity parsing, serialization and condition helpers."""

import json
import pytest
from kubernetes_asyncio.client import (
    V1EnvVar,
    V1ExecAction,
    V1ObjectMeta,
    V1Probe,
)
from sentinelop.utils.helpers import (
    canonicalize_dict,
    parse_quantity,
    prune,
    serialize,
    sort_env_vars,
    upsert_condition,
)


class TestParseQuantity:
    """Tests for parse_quantity."""

    def test_binary_suffix(self):
        assert parse_quantity("1Gi") == 1024**3

    def test_decimal_suffix(self):
        assert parse_quantity("500M") == 500 * 1000**2

    def test_no_suffix(self):
        assert parse_quantity("2048") == 2048

    def test_exponent(self):
        assert parse_quantity("1e3") == 1000

    def test_fractional_binary(self):
        assert parse_quantity("1.5Ki") == 1536

    def test_fraction_rounds_up(self):
        assert parse_quantity("100m") == 1

    def test_integer_input(self):
        assert parse_quantity(1024) == 1024

    def test_empty_string_raises(self):
        with pytest.raises(ValueError):
            parse_quantity("")

    def test_invalid_string_raises(self):
        with pytest.raises(ValueError):
            parse_quantity("lots")

    def test_unknown_suffix_raises(self):
        with pytest.raises(ValueError, match="Unknown quantity suffix"):
            parse_quantity("1Xi")

    def test_exponent_with_suffix_raises(self):
        with pytest.raises(ValueError):
            parse_quantity("1e3Gi")


class TestSerialize:
    """Tests for serialize of kubernetes models."""

    def test_model_uses_api_keys(self):
        meta = V1ObjectMeta(name="cache", resource_version="12")
        assert serialize(meta) == {"name": "cache", "resourceVersion": "12"}

    def test_none_attributes_are_dropped(self):
        assert serialize(V1ObjectMeta(name="cache")) == {"name": "cache"}

    def test_exec_attribute_name(self):
        probe = V1Probe(_exec=V1ExecAction(command=["bash", "/usr/bin/healthcheck.sh"]))
        assert serialize(probe) == {
            "exec": {"command": ["bash", "/usr/bin/healthcheck.sh"]}
        }

    def test_dicts_inside_models_are_kept(self):
        meta = V1ObjectMeta(name="cache", labels={"app": "cache"})
        assert serialize(meta)["labels"] == {"app": "cache"}

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            serialize(object())


class TestPrune:
    """Tests for prune."""

    def test_removes_empty_values(self):
        data = {"a": None, "b": {}, "c": [], "d": {"e": None}, "f": 1}
        assert prune(data) == {"f": 1}

    def test_keeps_falsy_scalars(self):
        assert prune({"replicas": 0, "enabled": False}) == {
            "replicas": 0,
            "enabled": False,
        }

    def test_prunes_inside_lists(self):
        assert prune([{"name": "a", "value": None}]) == [{"name": "a"}]


class TestSortEnvVars:
    """Tests for sort_env_vars."""

    def test_sorts_models_by_name(self):
        env = [V1EnvVar(name="SETUP_MODE"), V1EnvVar(name="IP"), V1EnvVar(name="PORT")]
        assert [e.name for e in sort_env_vars(env)] == ["IP", "PORT", "SETUP_MODE"]

    def test_sorts_dicts_by_name(self):
        env = [{"name": "B"}, {"name": "A"}]
        assert sort_env_vars(env) == [{"name": "A"}, {"name": "B"}]


class TestCanonicalizeDict:
    """Tests for canonicalize_dict."""

    def test_key_order_does_not_matter(self):
        assert canonicalize_dict({"b": 1, "a": {"d": 2, "c": 3}}) == canonicalize_dict(
            {"a": {"c": 3, "d": 2}, "b": 1}
        )

    def test_produces_json(self):
        assert json.loads(canonicalize_dict({"a": [1, 2]})) == {"a": [1, 2]}


class TestUpsertCondition:
    """Tests for upsert_condition."""

    def test_appends_new_condition(self):
        conds = upsert_condition([], {"type": "Ready", "status": "True"})
        assert len(conds) == 1
        assert conds[0]["type"] == "Ready"
        assert conds[0]["lastTransitionTime"]

    def test_same_status_keeps_transition_time(self):
        existing = [
            {"type": "Ready", "status": "True", "lastTransitionTime": "2020-01-01T00:00:00"}
        ]
        conds = upsert_condition(existing, {"type": "Ready", "status": "True", "reason": "Ok"})
        assert conds[0]["lastTransitionTime"] == "2020-01-01T00:00:00"
        assert conds[0]["reason"] == "Ok"

    def test_status_flip_bumps_transition_time(self):
        existing = [
            {"type": "Ready", "status": "True", "lastTransitionTime": "2020-01-01T00:00:00"}
        ]
        conds = upsert_condition(existing, {"type": "Ready", "status": "False"})
        assert conds[0]["lastTransitionTime"] != "2020-01-01T00:00:00"
        assert conds[0]["status"] == "False"

    def test_other_conditions_untouched(self):
        existing = [{"type": "Progressing", "status": "False", "lastTransitionTime": "t"}]
        conds = upsert_condition(existing, {"type": "Ready", "status": "True"})
        assert [c["type"] for c in conds] == ["Progressing", "Ready"]
