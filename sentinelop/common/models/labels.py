from typing import Dict


class ResourceLabels:
    APP_LABEL = "app"

    REDIS_SETUP_TYPE_LABEL = "redis_setup_type"

    ROLE_LABEL = "role"


class Labels(ResourceLabels):
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    COMPONENT = "redis"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_app(self, name: str) -> "Labels":
        return self.include(self.APP_LABEL, name)

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_component(self, component: str) -> "Labels":
        return self.include(self.KUBERNETES_COMPONENT_LABEL, component)

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def include_setup_type(self, setup_type: str) -> "Labels":
        return self.include(self.REDIS_SETUP_TYPE_LABEL, setup_type)

    def include_role(self, role: str) -> "Labels":
        return self.include(self.ROLE_LABEL, role)

    def claim_selectors(self) -> "Labels":
        """Labels identifying the claims of one StatefulSet."""
        return self._select(
            [self.APP_LABEL, self.KUBERNETES_COMPONENT_LABEL, self.KUBERNETES_NAME_LABEL]
        )

    def pod_selectors(self) -> "Labels":
        """Operator labels only, user supplied labels never select pods."""
        return self._select(
            [
                self.APP_LABEL,
                self.KUBERNETES_NAME_LABEL,
                self.KUBERNETES_COMPONENT_LABEL,
                self.KUBERNETES_MANAGED_BY_LABEL,
                self.REDIS_SETUP_TYPE_LABEL,
                self.ROLE_LABEL,
            ]
        )

    def _select(self, keys) -> "Labels":
        return Labels({key: self._labels[key] for key in keys if key in self._labels})

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(
        cls,
        stateful_set_name: str,
        setup_type: str,
        role: str,
        managed_by: str,
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_app(stateful_set_name)
            .include_kubernetes_name(stateful_set_name)
            .include_kubernetes_component(cls.COMPONENT)
            .include_kubernetes_managed_by(managed_by)
            .include_setup_type(setup_type)
            .include_role(role)
        )
