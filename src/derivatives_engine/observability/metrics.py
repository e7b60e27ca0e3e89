"""Prometheus metrics used across the pricing engine."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


MODEL_LATENCY = Histogram(
    "dpe_model_latency_seconds",
    "Time spent executing pricing models",
    labelnames=("model",),
    buckets=(
        0.0005,
        0.001,
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        10.0,
    ),
)

MODEL_ERRORS = Counter(
    "dpe_model_errors_total",
    "Number of failures encountered while executing pricing models",
    labelnames=("model",),
)

SIMULATED_PATHS = Counter(
    "dpe_simulated_paths_total",
    "Number of Monte Carlo paths averaged into prices",
    labelnames=("model",),
)

LSMC_SKIPPED_STEPS = Counter(
    "dpe_lsmc_skipped_steps_total",
    "Exercise dates skipped because the regression was under-determined",
)

THREADPOOL_IN_FLIGHT = Gauge(
    "dpe_threadpool_tasks_in_flight",
    "Currently executing pricing tasks",
    labelnames=("engine",),
)

THREADPOOL_WORKERS = Gauge(
    "dpe_threadpool_workers",
    "Configured worker threads for the pricing engine",
    labelnames=("engine",),
)
