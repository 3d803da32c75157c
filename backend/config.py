"""Central configuration: network, CORS, voting policy, broadcast tuning."""
import os

# ── Server ────────────────────────────────────────────────────────────────────
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT") or 80)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── Origins ───────────────────────────────────────────────────────────────────
# Shared by the CORS middleware and the WebSocket handshake check.
ALLOWED_ORIGINS: list[str] = [
    o.strip()
    for o in os.environ.get(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,https://movie-knights-inky.vercel.app",
    ).split(",")
    if o.strip()
]
ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type"]

# ── Voting policy ─────────────────────────────────────────────────────────────
MODE_OVERWRITE = "overwrite"  # re-voting replaces the voter's record
MODE_TALLY = "tally"          # one vote per voter, per-score counters
VOTE_MODES = (MODE_OVERWRITE, MODE_TALLY)
VOTE_MODE = os.environ.get("VOTE_MODE", MODE_OVERWRITE).lower()

# ── Broadcast ─────────────────────────────────────────────────────────────────
# Submitters block once this many events are waiting for the dispatcher.
BROADCAST_QUEUE_SIZE = int(os.environ.get("BROADCAST_QUEUE_SIZE") or 1024)

# Policy close code sent to a WebSocket whose Origin is not allowed.
WS_POLICY_VIOLATION = 1008

# Upper bound on flushing queued events to subscribers at shutdown.
SHUTDOWN_FLUSH_SECONDS = float(os.environ.get("SHUTDOWN_FLUSH_SECONDS") or 2.0)
