"""ID generation utilities."""
import uuid


def new_id(prefix: str = "") -> str:
    """Generate a UUID4-based ID with prefix."""
    return f"{prefix}{uuid.uuid4().hex}"


def new_conversation_id() -> str:
    """Conversation IDs are plain UUIDs so web clients can mint their own."""
    return str(uuid.uuid4())
