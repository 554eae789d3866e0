"""
FastAPI dependencies. Use Depends(...) in route handlers to receive the
engine factory and the shared joint angle estimator; tests override them via
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Callable

from core.services import InferenceEngine, JointAngleEstimator, create_engine

EngineFactory = Callable[[], InferenceEngine]


def get_engine_factory() -> EngineFactory:
    """Return the callable that builds one inference engine per stream."""
    return create_engine


@lru_cache(maxsize=1)
def get_angle_estimator() -> JointAngleEstimator:
    """Return the process-wide angle estimator (calibration loaded once)."""
    return JointAngleEstimator()
