import uuid


def new_id() -> str:
    """Primary keys are UUID strings, matching the hosted backend's schema."""
    return str(uuid.uuid4())
