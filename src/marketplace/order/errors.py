"""Order lifecycle error taxonomy.

Every error carries a ``{field: [messages]}`` dict, like the framework's own
exceptions, so API layers can surface them unchanged.
"""

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError


class InvalidTransitionError(ValidationError):
    """A state machine guard rejected the requested transition."""


class AlreadyDecidedError(InvalidTransitionError):
    """The line item's shop approval is no longer pending."""


class AlreadyInProgressError(InvalidTransitionError):
    """A sub-workflow for the line item is already running."""


class ReturnInProgressError(AlreadyInProgressError):
    """A return request is already open for the line item."""


class EmptyOrderError(ValidationError):
    """No cart line survived validation against the catalogue."""


class NoDeliveryAddressError(ValidationError):
    """The buyer has no address marked as recently used."""


class AmountMismatchError(ValidationError):
    """The settlement total disagrees with the computed cart total."""


class LineItemNotFoundError(ObjectNotFoundError):
    """The order has no line item with the given id or product id."""


class NotAuthorizedError(ProteanException):
    """The actor's role or shop does not allow acting on the target."""
