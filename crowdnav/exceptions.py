# crowdnav/exceptions.py
"""
Domain error taxonomy.
Geometry, classification and routing errors are caller-correctable and never retried.
PublishFailure is transient: logged, then recovered by the next sync cycle.
"""


class CrowdNavError(Exception):
    """Base class for all crowdnav domain errors."""


class InvalidPolygon(CrowdNavError):
    def __init__(self, zone_id: str, vertex_count: int):
        self.zone_id = zone_id
        self.vertex_count = vertex_count
        super().__init__(f"Zone '{zone_id}' boundary has {vertex_count} vertices, at least 3 required")


class InvalidCapacity(CrowdNavError):
    def __init__(self, capacity: int, zone_id: str = None):
        self.capacity = capacity
        self.zone_id = zone_id
        where = f" for zone '{zone_id}'" if zone_id else ""
        super().__init__(f"Capacity must be a positive integer{where}, got {capacity}")


class InvalidEndpoints(CrowdNavError):
    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        super().__init__(f"Cannot route {source} → {destination}: {reason}")


class ZoneNotFound(CrowdNavError):
    def __init__(self, zone_id: str):
        self.zone_id = zone_id
        super().__init__(f"Zone '{zone_id}' not found")


class PublishFailure(CrowdNavError):
    """An external collaborator rejected a write. In-memory state is unaffected."""

    def __init__(self, publisher: str, record_id: str, cause: Exception):
        self.publisher = publisher
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"{publisher} failed to publish {record_id}: {cause}")


class UserNotFound(CrowdNavError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No position recorded for user '{user_id}'")


class ZoneAlreadyExists(CrowdNavError):
    def __init__(self, zone_id: str):
        self.zone_id = zone_id
        super().__init__(f"Zone '{zone_id}' already exists")


class NoteNotFound(CrowdNavError):
    def __init__(self, zone_id: str, note_id: str):
        self.zone_id = zone_id
        self.note_id = note_id
        super().__init__(f"Zone '{zone_id}' has no note '{note_id}'")
