"""Exception types shared across the service."""


class InvalidInputError(ValueError):
    """A required piece of caller input is missing or empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field.capitalize()} is required")
