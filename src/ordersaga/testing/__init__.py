"""Testing utilities for applications built on ordersaga."""

from ordersaga.testing.harness import RecordingRepository, SagaTestHarness

__all__ = ["RecordingRepository", "SagaTestHarness"]
