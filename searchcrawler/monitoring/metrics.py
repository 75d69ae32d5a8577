from prometheus_client import Counter, Gauge, Histogram

# -------------------------
# Run-Level Metrics
# -------------------------

CRAWL_RUNS = Counter(
    "searchcrawler_runs_total",
    "Finished crawl runs by outcome",
    ["outcome"],
)

ACTIVE_RUNS = Gauge(
    "searchcrawler_active_runs",
    "Crawl runs currently executing",
)

DISPATCH_REJECTED = Counter(
    "searchcrawler_dispatch_rejected_total",
    "Crawl runs rejected because the worker pool was saturated or stopping",
)

# -------------------------
# Request Metrics
# -------------------------

PAGES_FETCHED = Counter(
    "searchcrawler_pages_fetched_total",
    "Pages fetched successfully",
)

FETCH_FAILURES = Counter(
    "searchcrawler_fetch_failures_total",
    "Page fetches that produced no document",
    ["reason"],
)

REQUEST_LATENCY = Histogram(
    "searchcrawler_request_latency_seconds",
    "Time to fetch a page",
)

SKIPPED_LINKS = Counter(
    "searchcrawler_skipped_links_total",
    "Links dropped during enumeration",
    ["reason"],
)

# -------------------------
# Robots / Discovery Metrics
# -------------------------

ROBOTS_BLOCKED = Counter(
    "searchcrawler_robots_blocked_total",
    "URLs skipped because robots.txt disallowed them",
)

ROBOTS_FETCHES = Counter(
    "searchcrawler_robots_fetches_total",
    "robots.txt fetches by result",
    ["result"],
)

DOMAINS_DISCOVERED = Counter(
    "searchcrawler_domains_discovered_total",
    "New root domains recorded for approval",
)

# -------------------------
# Queue Metrics
# -------------------------

QUEUE_PENDING = Gauge(
    "searchcrawler_queue_pending",
    "Number of queue items waiting in PENDING",
)
