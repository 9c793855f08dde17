# /app/utils/exceptions.py

# Domain errors raised by the service layer. Exception handlers on the app
# translate them to HTTP status codes; background jobs log them.


class StoreBotError(Exception):
    """Base class for application errors."""


class NotFoundError(StoreBotError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStatusTransition(StoreBotError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move recovery attempt from '{current}' back to '{requested}'")


class DuplicateSettingsError(StoreBotError):
    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__(f"Automation settings already exist for store {store_id}")


class AIUnavailableError(StoreBotError):
    """No AI provider produced a usable response."""
