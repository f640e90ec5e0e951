"""General utility functions and helper classes."""

import re
from urllib.parse import urlparse


def slugify(text: str) -> str:
    """Slugify text for use in file names (lowercase, hyphens, alphanum only)."""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    return slug


def generate_store_file_name(owner: str, repo: str, youtrack_url: str, project_id: str) -> str:
    """Generate a deterministic store file name like 'octocat-hello-world--example-youtrack-cloud--0-1.jsonl'.

    The name is scoped per (source repository, destination host, destination project).
    """
    host = urlparse(youtrack_url).netloc or youtrack_url
    return f"{slugify(f'{owner}-{repo}')}--{slugify(host)}--{slugify(project_id)}.jsonl"
