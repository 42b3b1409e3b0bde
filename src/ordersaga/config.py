"""
Configuration for the order saga coordinator.

This module provides:
- SagaConfig: Tunables for guards, adapter timeouts and shutdown
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SagaConfig:
    """
    Configuration for an OrderSagaCoordinator.

    Attributes:
        signature_threshold: Order total above which a delivery signature is
            required (strictly greater than)
        adapter_timeout: Max seconds an adapter call may take before it is
            reported as timed out (None = no timeout)
        tracking_timeout: Max seconds to wait for the next tracking report
            from the carrier (None = no timeout)
        compensation_step_timeout: Max seconds for a single compensation step
            (None = no timeout)
        shutdown_timeout: Max seconds to wait for background work on shutdown
        enable_tracing: Emit OpenTelemetry spans from coordinator components

    Example:
        >>> config = SagaConfig(adapter_timeout=5.0, tracking_timeout=3600.0)
        >>> coordinator = OrderSagaCoordinator(repository, services, config=config)
    """

    signature_threshold: float = 999.99

    # Timeouts
    adapter_timeout: float | None = 30.0
    tracking_timeout: float | None = None
    compensation_step_timeout: float | None = 30.0
    shutdown_timeout: float = 30.0

    # Observability
    enable_tracing: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.signature_threshold < 0:
            raise ValueError("signature_threshold must be >= 0")
        for name in ("adapter_timeout", "tracking_timeout", "compensation_step_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be > 0 or None")
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be > 0")

    def timeout_for(self, port: str) -> float | None:
        """Timeout applied when invoking the given adapter port."""
        if port == "track_shipment":
            return self.tracking_timeout
        return self.adapter_timeout


__all__ = ["SagaConfig"]
