"""Monitoring configuration for the application."""
from prometheus_client import Counter, Histogram, start_http_server

# Definition metrics
definition_requests = Counter(
    "neonvocab_definition_requests_total",
    "Definition lookups by how they were resolved",
    ["source"],  # memory, inflight, provider
)

definition_failures = Counter(
    "neonvocab_definition_failures_total",
    "Definition lookups that degraded to the fallback definition",
)

definition_fetch_duration = Histogram(
    "neonvocab_definition_fetch_seconds",
    "Duration of provider definition fetches in seconds, retries included",
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Learning metrics
answers = Counter(
    "neonvocab_answers_total",
    "Answers applied to words",
    ["result"],  # success, failure
)

words_mastered = Counter(
    "neonvocab_words_mastered_total",
    "Words that reached mastery",
)

learning_sessions = Counter(
    "neonvocab_learning_sessions_total",
    "Learning sessions started",
    ["mode"],
)

goals_met = Counter(
    "neonvocab_goals_met_total",
    "Session goals reached",
    ["goal_type"],
)

# Storage metrics
state_saves = Counter(
    "neonvocab_state_saves_total",
    "Number of times the persisted state was written",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
