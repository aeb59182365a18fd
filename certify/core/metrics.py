"""Application metrics using the Prometheus client library.

Every metric the service exposes is declared here, so this file is the
inventory.  Modules import the metric they own and increment it at the
point of action.

HTTP metrics are fed by MetricsMiddleware.  Domain metrics answer the
operational questions specific to an issuance engine:

  - What share of uploads are duplicates?   certificate_submissions_total
  - Are people presenting tampered copies?  verification_verdicts_total
  - Is the Store drifting from the Ledger?  integrity_faults_total (alert on > 0)
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Issuance engine metrics
# ---------------------------------------------------------------------------

CERTIFICATE_SUBMISSIONS = Counter(
    "certificate_submissions_total",
    "Certificate uploads by outcome",
    ["status"],  # issued|duplicate|rejected
)

VERIFICATION_VERDICTS = Counter(
    "verification_verdicts_total",
    "Verification queries by verdict",
    ["verdict"],
)

REVOCATIONS = Counter(
    "revocations_total",
    "Revocation attempts by outcome",
    ["outcome"],  # revoked|not_found|already_revoked|forbidden
)

INTEGRITY_FAULTS = Counter(
    "integrity_faults_total",
    "Verification IDs whose fingerprint has no Store record",
)

DIGEST_DURATION = Histogram(
    "certificate_fingerprint_seconds",
    "Time spent canonicalizing and fingerprinting an upload",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)
