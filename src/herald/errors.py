"""Error taxonomy shared across Herald components."""


class HeraldError(Exception):
    """Base class for all Herald errors."""


class AuthorizationError(HeraldError):
    """Missing or invalid credential on a scheduler endpoint."""


class ScheduleNotFoundError(HeraldError):
    """Schedule does not exist (or is not owned by the caller)."""


class ScheduleValidationError(HeraldError):
    """Schedule creation input is invalid."""


class InvalidTransitionError(HeraldError):
    """Requested lifecycle transition is not allowed from the current status."""

    def __init__(self, schedule_id: str, current: str, target: str) -> None:
        super().__init__(
            f"Schedule {schedule_id} cannot move from {current} to {target}"
        )
        self.schedule_id = schedule_id
        self.current = current
        self.target = target


class TargetResolutionError(HeraldError):
    """Recipients for a firing could not be determined."""


class PerRecipientDeliveryError(HeraldError):
    """A single recipient send failed."""

    def __init__(self, recipient_id: str, message: str) -> None:
        super().__init__(message)
        self.recipient_id = recipient_id


class RegistrationError(HeraldError):
    """Trigger coordinator rejected a job registration."""


class CancellationError(HeraldError):
    """Trigger coordinator could not tear down a registered job."""
