REDIS_RATE_KEY = "rate:{bucket}:{ip}" # sorted set of request hits, score = unix time

# **Buckets**
# - `create`: POST /api/create
# - `join`: WS /api/join/{code}

# **Sliding window**
# - On request: ZREMRANGEBYSCORE drops hits older than the window, ZCARD counts the rest.
# - Admitted requests ZADD a unique member and refresh EXPIRE to the window length,
#   so an idle IP's key disappears on its own.
