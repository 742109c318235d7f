class RedisResources:
    """Encapsulates the naming scheme of the objects the operator manages for a
    RedisReplication or RedisSentinel of a given name."""

    @classmethod
    def replication_stateful_set_name(self, name: str):
        """Returns the name of the StatefulSet backing a RedisReplication."""
        return name

    @classmethod
    def sentinel_stateful_set_name(self, name: str):
        """Returns the name of the StatefulSet backing a RedisSentinel."""
        return f"{name}-sentinel"

    @classmethod
    def headless_service_name(self, stateful_set_name: str):
        return f"{stateful_set_name}-headless"

    @classmethod
    def service_name(self, stateful_set_name: str):
        return stateful_set_name

    @classmethod
    def additional_service_name(self, stateful_set_name: str):
        return f"{stateful_set_name}-additional"

    @classmethod
    def pod_name(self, stateful_set_name: str, ordinal: int):
        """Returns the name of the replica pod with the given ordinal."""
        return f"{stateful_set_name}-{ordinal}"

    @classmethod
    def pod_dns_name(self, stateful_set_name: str, ordinal: int, namespace: str):
        """Returns the stable DNS name of a replica, resolvable through the headless service."""
        return (
            f"{self.pod_name(stateful_set_name, ordinal)}."
            f"{self.headless_service_name(stateful_set_name)}.{namespace}.svc"
        )

    @classmethod
    def claim_name(self, template_name: str, stateful_set_name: str, ordinal: int):
        """Returns the name of the claim a StatefulSet creates for one replica."""
        return f"{template_name}-{stateful_set_name}-{ordinal}"
