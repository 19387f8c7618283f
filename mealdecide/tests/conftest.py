import os

# The suite logs in and pages far more often than one client would in a minute.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
