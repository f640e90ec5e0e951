"""Shared constants used across the application."""

# GitHub Constants
# ----------------

DEFAULT_GITHUB_API_URL = "https://api.github.com"
"""Public GitHub REST API endpoint."""

GITHUB_ISSUES_PER_PAGE = 100
"""Maximum page size accepted by the GitHub issues listing endpoint."""

# YouTrack Constants
# ------------------

YOUTRACK_ISSUE_FIELDS = "id,idReadable"
"""Fields requested back from YouTrack when an issue is created."""

YOUTRACK_PROJECT_FIELDS = "id,name,shortName"
"""Fields requested back from YouTrack when searching projects."""

YOUTRACK_TAG_FIELDS = "id,name"
"""Fields requested back from YouTrack for tags."""

YOUTRACK_TAGS_PER_PAGE = 100
"""Page size used when searching YouTrack tags by name."""

YOUTRACK_STATE_FIELD_TYPE = "StateIssueCustomField"
"""YouTrack custom field type used for the state (resolved flag) field."""

DEFAULT_STATE_FIELD_NAME = "State"
"""Name of the YouTrack custom field carrying the issue state."""

DEFAULT_OPEN_STATE_NAME = "Open"
"""YouTrack state used for open GitHub issues."""

DEFAULT_RESOLVED_STATE_NAME = "Fixed"
"""YouTrack state used for closed GitHub issues without a more specific reason."""

# Synchronization Constants
# -------------------------

DEFAULT_STATE_DIR = ".yousync"
"""Directory where correspondence stores are persisted."""

DEFAULT_MAX_CONCURRENCY = 4
"""Default number of issues processed in parallel within one run."""

# Retry Constants
# ---------------

DEFAULT_MAX_RETRIES = 5
"""Number of retries after the first attempt of an adapter call."""

DEFAULT_INITIAL_RETRY_DELAY = 1.0
"""Initial backoff delay in seconds."""

DEFAULT_MAX_RETRY_DELAY = 60.0
"""Upper bound for any single wait between attempts, in seconds."""
