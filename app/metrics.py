from prometheus_client import Counter, Histogram, Gauge
# Prometheus metrics definitions

# Analysis related metrics
# analysis_requests_total: Counter, labelled by request kind
# analysis_latency_seconds: Histogram of upstream analysis latency

analysis_requests_total = Counter(
    "analysis_requests_total", "Total solve requests sent for analysis", ["kind"]
)

# LLM replies for chemistry problems are slow; buckets reach a minute
_analysis_latency_buckets = (
    1.0,
    2.0,
    4.0,
    8.0,
    16.0,
    32.0,
    64.0,
)

analysis_latency_seconds = Histogram(
    "analysis_latency_seconds",
    "Upstream analysis latency",
    buckets=_analysis_latency_buckets,
)

# Failed analysis calls; quota is never consumed for these
analysis_fail_total = Counter(
    "analysis_fail_total", "Number of failed analysis calls", ["reason"]
)

# Entitlement denials (daily cap or photo cooldown)
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests", ["reason"]
)

# Subscription/usage record store faults absorbed locally
record_store_errors_total = Counter(
    "record_store_errors_total", "Record store failures", ["op"]
)

history_save_fail_total = Counter(
    "history_save_fail_total", "Failed history writes"
)

checkout_success_total = Counter(
    "checkout_success_total", "Simulated checkouts that installed PRO"
)

# Countdowns currently ticking for free users
countdowns_armed = Gauge(
    "countdowns_armed", "Number of armed cooldown countdowns"
)

__all__ = [
    "analysis_requests_total",
    "analysis_latency_seconds",
    "analysis_fail_total",
    "quota_reject_total",
    "record_store_errors_total",
    "history_save_fail_total",
    "checkout_success_total",
    "countdowns_armed",
]
