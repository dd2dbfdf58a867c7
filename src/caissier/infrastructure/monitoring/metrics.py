"""
Prometheus metrics collection.
"""

from prometheus_client import Counter, Histogram

# ============================================================
# RPC Metrics
# ============================================================

rpc_requests_total = Counter(
    "caissier_rpc_requests_total",
    "Total Solana RPC requests",
    ["method", "status"],
)

rpc_errors_total = Counter(
    "caissier_rpc_errors_total",
    "Total Solana RPC errors",
    ["method", "error_type"],
)

rpc_request_duration_seconds = Histogram(
    "caissier_rpc_request_duration_seconds",
    "Solana RPC request duration in seconds",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

rpc_fallbacks_total = Counter(
    "caissier_rpc_fallbacks_total",
    "RPC calls that moved on to a fallback endpoint",
    ["method"],
)

# ============================================================
# Confirmation Metrics
# ============================================================

confirmations_total = Counter(
    "caissier_confirmations_total",
    "Confirmation flows by terminal state",
    ["state"],
)

confirmation_duplicates_total = Counter(
    "caissier_confirmation_duplicates_total",
    "Confirmation requests answered without running a new flow",
    ["scope"],
)

poll_attempts = Histogram(
    "caissier_poll_attempts",
    "Signature status polls per confirmation",
    buckets=(1, 2, 3, 5, 8, 12, 20, 30, 50),
)

confirmation_duration_seconds = Histogram(
    "caissier_confirmation_duration_seconds",
    "Time from submission to terminal status",
    buckets=(1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, 300.0),
)

# ============================================================
# Verification Metrics
# ============================================================

verification_outcomes_total = Counter(
    "caissier_verification_outcomes_total",
    "Verification backend answers by kind",
    ["outcome"],
)

reconciliation_entries_total = Counter(
    "caissier_reconciliation_entries_total",
    "Payments recorded for out-of-band reconciliation",
    ["reason"],
)
