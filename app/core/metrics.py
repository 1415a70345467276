"""
Prometheus metrics for the match weather sync API.

This module defines all Prometheus metrics used for monitoring and observability.

Metrics exposed:
- External API success/failure counters (TheSportsDB, OpenWeather, DeepSeek)
- TheSportsDB quota window gauge and cooldown counter
- Sync run and per-match outcome counters
- Database connection pool gauges
- Scheduler status gauge
"""
from prometheus_client import Counter, Gauge

# External API Metrics
sportsdb_requests_total = Counter(
    "sportsdb_requests_total",
    "Total TheSportsDB requests",
    ["endpoint", "outcome"]
)

weather_requests_total = Counter(
    "weather_requests_total",
    "Total OpenWeather timemachine lookups",
    ["outcome"]
)

deepseek_requests_total = Counter(
    "deepseek_requests_total",
    "Total DeepSeek chat completion requests",
    ["outcome"]
)

# Quota Metrics
sportsdb_quota_used = Gauge(
    "sportsdb_quota_used",
    "TheSportsDB calls spent in the current quota window"
)

sportsdb_quota_cooldowns_total = Counter(
    "sportsdb_quota_cooldowns_total",
    "Number of times the client paused for the quota cooldown"
)

# Sync Metrics
sync_runs_total = Counter(
    "sync_runs_total",
    "Previous-match sync runs by terminal outcome",
    ["outcome"]
)

sync_matches_total = Counter(
    "sync_matches_total",
    "Matches processed by sync, by outcome",
    ["league_id", "outcome"]
)

sync_running = Gauge(
    "sync_running",
    "Whether this process is running a sync (1=running, 0=idle)"
)

# Prediction Metrics
prediction_cache_total = Counter(
    "prediction_cache_total",
    "Prediction cache lookups",
    ["result"]
)

# Database Metrics
db_pool_connections = Gauge(
    "db_pool_connections",
    "Number of database connections in the pool"
)

db_pool_connections_checked_out = Gauge(
    "db_pool_connections_checked_out",
    "Number of checked out database connections"
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the sync scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_db_pool_metrics():
    """
    Update database connection pool metrics from SQLAlchemy engine.

    Call this periodically to update pool metrics. SQLite's default pool
    does not report sizes, so nothing is recorded for it.
    """
    from app.core.database import engine

    pool = engine.pool
    try:
        db_pool_connections.set(pool.size())
        db_pool_connections_checked_out.set(pool.checkedout())
    except AttributeError:
        pass


def update_scheduler_metrics():
    """Update scheduler status gauges."""
    from app.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler_running.set(1)
        if scheduler.scheduler:
            scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)


def record_sportsdb_request(endpoint: str, outcome: str = "success"):
    """Record a TheSportsDB request (outcome: success, not_found, error)."""
    sportsdb_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()


def record_quota_cooldown():
    """Record a quota cooldown pause."""
    sportsdb_quota_cooldowns_total.inc()


def record_weather_request(outcome: str = "success"):
    """Record an OpenWeather lookup (outcome: success, empty, error, skipped)."""
    weather_requests_total.labels(outcome=outcome).inc()


def record_deepseek_request(outcome: str = "success"):
    deepseek_requests_total.labels(outcome=outcome).inc()


def record_sync_run(outcome: str):
    """Record a finished sync run (outcome: completed, error)."""
    sync_runs_total.labels(outcome=outcome).inc()


def record_sync_match(league_id: str, outcome: str):
    """Record one match processed by sync (outcome: inserted, updated, failed)."""
    sync_matches_total.labels(league_id=league_id, outcome=outcome).inc()


def record_prediction_cache(hit: bool):
    prediction_cache_total.labels(result="hit" if hit else "miss").inc()
