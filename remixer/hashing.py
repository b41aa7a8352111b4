import hashlib


def content_hash(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text; identity key for stored originals."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
