# studypet/core/errors.py
"""Error taxonomy of the pet engine.

ValidationError and NotEligibleError are raised to the caller with pet state
left unchanged. TransientIOError wraps collaborator failures; the lifecycle
store logs it and keeps the in-memory state. Invariant violations are not
raised at all: they are clamped or tolerated and logged as
`invariant_violation_*` events.
"""


class PetEngineError(Exception):
    """Base class for every error the engine raises."""


class ValidationError(PetEngineError):
    pass


class NoPetError(ValidationError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} has not adopted a pet")
        self.user_id = user_id


class PetAlreadyAdoptedError(ValidationError):
    pass


class UnknownSpeciesError(ValidationError):
    pass


class UnknownItemError(ValidationError):
    pass


class CooldownActiveError(ValidationError):
    def __init__(self, action: str, minutes_remaining: float):
        super().__init__(f"{action} is on cooldown for {minutes_remaining:.1f} more minutes")
        self.action = action
        self.minutes_remaining = minutes_remaining


class InsufficientFundsError(ValidationError):
    def __init__(self, required: int, available: int):
        super().__init__(f"Not enough coins: need {required}, have {available}")
        self.required = required
        self.available = available


class ActionInProgressError(ValidationError):
    def __init__(self, current: str, attempted: str):
        super().__init__(f"Cannot start '{attempted}' while '{current}' is in progress")
        self.current = current
        self.attempted = attempted


class NotEligibleError(PetEngineError):
    pass


class TransientIOError(PetEngineError):
    pass
