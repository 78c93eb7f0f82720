"""
Prometheus metric definitions
"""

from prometheus_client import Counter, Gauge, Histogram, Info

info = Info("build", "Information collected on server start")

# ==========
# Matchmaker
# ==========
matches = Counter(
    "parley_matchmaker_matches_total",
    "Number of sessions created by the matchmaker",
    ["tier"]
)

stale_queue_entries = Counter(
    "parley_matchmaker_stale_queue_entries_total",
    "Queue entries discarded because the participant was gone or matched",
    ["tier"]
)

queued_participants = Gauge(
    "parley_matchmaker_queue_participants",
    "Number of participants currently waiting in a tier queue",
    ["tier"]
)

queue_wait_duration = Histogram(
    "parley_matchmaker_queue_wait_seconds",
    "Time a participant spent in a queue before leaving it",
    ["tier", "status"],
    buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600],
)

registrations = Counter(
    "parley_registrations_total",
    "Total number of registration attempts",
    ["status"]
)

# ========
# Sessions
# ========
active_sessions = Gauge(
    "parley_sessions_active",
    "Number of sessions currently in the session table",
)

ended_sessions = Counter(
    "parley_sessions_ended_total",
    "Number of sessions removed from the session table",
    ["reason"]
)

session_duration = Histogram(
    "parley_session_duration_seconds",
    "Lifetime of sessions in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800, 3600, 7200],
)

relayed_events = Counter(
    "parley_relay_events_total",
    "Number of events relayed inside a session",
    ["event"]
)

dropped_events = Counter(
    "parley_relay_dropped_events_total",
    "Number of relay events that were dropped",
    ["event"]
)

# ========================
# Connections and Messages
# ========================
user_connections = Gauge(
    "parley_user_connections",
    "Number of clients currently connected to the server",
    ["protocol"],
)

profiles_online = Gauge(
    "parley_profiles_online",
    "Number of registered profiles",
)

server_connections = Counter(
    "parley_lobbyconnections_total",
    "Total number of connections as per lobbyconnection.on_connection_made",
)

sent_messages = Counter(
    "parley_messages_total",
    "Total number of messages sent",
    ["protocol"]
)

connection_on_message_received = Histogram(
    "parley_on_message_received_seconds",
    "Seconds spent in 'connection.on_message_received'",
)
