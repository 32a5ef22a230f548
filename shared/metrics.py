"""
Shared metrics configuration for the ACL policy engine.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, CollectorRegistry


class ACLMetrics:
    """Prometheus collector for policy decisions and rule loads."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        # A private registry keeps several engines in one process apart
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up engine metrics."""
        self._metrics["policy_decisions_total"] = Counter(
            "acl_policy_decisions_total",
            "Total policy decisions",
            ["policy"],
            registry=self.registry
        )

        self._metrics["rule_loads_total"] = Counter(
            "acl_rule_loads_total",
            "Total rule loads from the rule loader",
            registry=self.registry
        )

        self._metrics["policy_resolution_seconds"] = Histogram(
            "acl_policy_resolution_seconds",
            "Policy resolution duration in seconds",
            registry=self.registry
        )

    def record_decision(self, policy: str):
        """Record the outcome of a policy query."""
        self._metrics["policy_decisions_total"].labels(policy=policy).inc()

    def record_rule_load(self):
        """Record one rule-loader invocation."""
        self._metrics["rule_loads_total"].inc()

    @contextmanager
    def time_resolution(self):
        """Time a policy resolution."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["policy_resolution_seconds"].observe(time.perf_counter() - start_time)

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample value back from the registry."""
        return self.registry.get_sample_value(name, labels or {})
