"""Unit tests for resource labels."""

from sentinelop.common.models.labels import Labels


class TestDefaultLabels:
    """Tests for Labels.generate_default_labels."""

    def test_contents(self):
        labels = Labels.generate_default_labels(
            "cache", "replication", "replication", "redis-sentinel-operator"
        )
        assert labels.as_dict() == {
            "app": "cache",
            "app.kubernetes.io/name": "cache",
            "app.kubernetes.io/component": "redis",
            "app.kubernetes.io/managed-by": "redis-sentinel-operator",
            "redis_setup_type": "replication",
            "role": "replication",
        }


class TestSelectors:
    """Tests for selector subsets."""

    def test_pod_selectors_drop_user_labels(self):
        labels = Labels({"team": "payments"}).update(
            Labels.generate_default_labels(
                "cache", "replication", "replication", "op"
            ).as_dict()
        )
        selectors = labels.pod_selectors().as_dict()
        assert "team" not in selectors
        assert selectors["app"] == "cache"
        assert len(selectors) == 6

    def test_claim_selectors(self):
        labels = Labels.generate_default_labels("cache", "replication", "replication", "op")
        assert labels.claim_selectors().as_dict() == {
            "app": "cache",
            "app.kubernetes.io/component": "redis",
            "app.kubernetes.io/name": "cache",
        }
