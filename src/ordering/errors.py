"""Error kinds raised by the ordering context.

Input and rule violations use Protean's ``ValidationError`` and missing
records its ``ObjectNotFoundError``. The classes below refine those so the
API layer can map them to distinct responses.
"""

from protean.exceptions import ValidationError


class ConflictError(ValidationError):
    """The request clashes with the current state (duplicate coupon, combo...)."""


class OutOfStockError(ConflictError):
    def __init__(self, product_id, requested, available):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            {"quantity": [f"Only {available} unit(s) of product {product_id} available, requested {requested}"]}
        )


class InvalidTransitionError(ValidationError):
    """Illegal status jump. ``required_step`` names the state that must come first."""

    def __init__(self, current, target, required_step=None):
        self.current = current
        self.target = target
        self.required_step = required_step

        if required_step:
            message = (
                f"Cannot update item directly to '{target}'. "
                f"Follow sequence: {current} → {required_step}"
            )
        else:
            message = f"Cannot move item from '{current}' to '{target}'"
        super().__init__({"status": [message]})


class ExternalServiceError(Exception):
    """A collaborator outside the domain (payment gateway) failed."""

    def __init__(self, service, message, code=None):
        self.service = service
        self.message = message
        self.code = code
        super().__init__(f"{service}: {message}")
