# ---------------------------------------------------------
# Per-repository schedule
# ---------------------------------------------------------

# Sorted set: repo full name -> next due timestamp
SCHEDULE_INDEX = "gitpod:schedule:index"

# Hash per scheduled repo
# Key format:
#   gitpod:schedule:repo:{owner}/{repo}
SCHEDULE_REPO_PREFIX = "gitpod:schedule:repo:"
