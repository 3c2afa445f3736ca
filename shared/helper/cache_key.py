"""Cache key derivation."""

import hashlib

ANONYMOUS_SCOPE = "anonymous"


def make_cache_key(namespace: str, content: str) -> str:
    """Build a fixed-length cache key from a namespace and arbitrary content.

    The content is hashed with SHA-256, so long questions or chunk texts give
    keys of the same size and the original content cannot be read back.

    Args:
        namespace (str): Key prefix, e.g. "embedding" or "query:<user_id>".
        content (str): The content to hash.

    Returns:
        str: "<namespace>:<64 hex chars>"
    """
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


def user_namespace(prefix: str, user_id: str | None) -> str:
    """Return a namespace partitioned by user, e.g. "query:<user_id>".

    Callers without an identity share the "anonymous" partition, which is
    never the partition of a real user.
    """
    return f"{prefix}:{user_id or ANONYMOUS_SCOPE}"
