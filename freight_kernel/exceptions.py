"""
Typed Exception Hierarchy for the Freight Kernel.

===============================================================================
WHERE EXCEPTIONS ARE RAISED
===============================================================================

The decision functions (stage machine, field permissions, commission
formulas, lock acquisition) are TOTAL: they answer every question with a
value (``False``, a reason string, a zero breakdown) and never raise.

Exceptions exist only at the boundaries where a caller asked for an
action rather than a decision:

  - loading a configuration set that fails validation
  - applying a stage move that the stage machine refused
  - entering an edit session on a record someone else holds
  - administering commission rules

Every exception carries a class-level ``code`` (machine-readable) and
stores its context as attributes (structured, survives logging).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FreightKernelError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidConfigurationError
    |
    +-- StageError
    |   +-- StageTransitionRefusedError
    |   +-- FieldEditRefusedError
    |
    +-- ConcurrencyError
    |   +-- RecordLockedError
    |
    +-- CommissionRuleError
        +-- InvalidCommissionRuleError
        +-- UnauthorizedRuleChangeError
        +-- CommissionRuleNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_CONFIGURATION       | Config set failed validation
----------------|-----------------------------|-----------------------------------------
Stage           | STAGE_TRANSITION_REFUSED    | advance/revert/mark_lost not allowed
                | FIELD_EDIT_REFUSED          | Submitted edit touches a locked field
----------------|-----------------------------|-----------------------------------------
Concurrency     | RECORD_LOCKED               | Record is being edited by someone else
----------------|-----------------------------|-----------------------------------------
Commission      | INVALID_COMMISSION_RULE     | Rule config malformed (tiers, rates)
                | UNAUTHORIZED_RULE_CHANGE    | Non-admin attempted a rule change
                | COMMISSION_RULE_NOT_FOUND   | No rule stored for salesperson

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        with lock_manager.hold(shipment.id, user.id):
            ...
    except RecordLockedError as e:
        notify_user(str(e))           # "being edited by someone else"
        log.info("edit refused", extra={"holder": e.holder_id})

    try:
        shipment = policy.advance(shipment, roles)
    except StageTransitionRefusedError as e:
        show_error(e.reason)          # itemized missing fields
"""


class FreightKernelError(Exception):
    """
    Base exception for all freight kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "FREIGHT_KERNEL_ERROR"


# Configuration exceptions


class ConfigurationError(FreightKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidConfigurationError(ConfigurationError):
    """A configuration set failed validation and must not be used."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, config_id: str, errors: list[str]):
        self.config_id = config_id
        self.errors = list(errors)
        super().__init__(
            f"Configuration {config_id} is invalid: {'; '.join(self.errors)}"
        )


# Stage exceptions


class StageError(FreightKernelError):
    """Base exception for stage lifecycle errors."""

    code: str = "STAGE_ERROR"


class StageTransitionRefusedError(StageError):
    """
    A requested stage move was refused by the stage machine.

    Raised only by the services facade when a caller asks to *apply* a
    move. ``missing_fields`` is populated by the completion gate.
    """

    code: str = "STAGE_TRANSITION_REFUSED"

    def __init__(
        self,
        shipment_id: str,
        from_stage: str,
        to_stage: str | None,
        reason: str,
        missing_fields: tuple[str, ...] = (),
    ):
        self.shipment_id = shipment_id
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.reason = reason
        self.missing_fields = tuple(missing_fields)
        super().__init__(reason)


class FieldEditRefusedError(StageError):
    """
    A submitted edit touches fields the user may not edit right now.

    ``refused`` maps each offending field to its lock reason.
    """

    code: str = "FIELD_EDIT_REFUSED"

    def __init__(self, shipment_id: str, refused: dict[str, str]):
        self.shipment_id = shipment_id
        self.refused = dict(refused)
        super().__init__(
            f"Cannot edit shipment {shipment_id}: "
            + "; ".join(f"{name}: {reason}" for name, reason in sorted(self.refused.items()))
        )


# Concurrency exceptions


class ConcurrencyError(FreightKernelError):
    """Base exception for concurrent-edit errors."""

    code: str = "CONCURRENCY_ERROR"


class RecordLockedError(ConcurrencyError):
    """The record is held by another editor; entry to the edit session is refused."""

    code: str = "RECORD_LOCKED"

    def __init__(self, resource_id: str, holder_id: str | None, requested_by: str):
        self.resource_id = resource_id
        self.holder_id = holder_id
        self.requested_by = requested_by
        super().__init__(
            f"Record {resource_id} is being edited by someone else"
        )


# Commission rule exceptions


class CommissionRuleError(FreightKernelError):
    """Base exception for commission rule administration."""

    code: str = "COMMISSION_RULE_ERROR"


class InvalidCommissionRuleError(CommissionRuleError):
    """Rule config does not describe a usable formula."""

    code: str = "INVALID_COMMISSION_RULE"

    def __init__(self, salesperson: str, formula_type: str, problems: list[str]):
        self.salesperson = salesperson
        self.formula_type = formula_type
        self.problems = list(problems)
        super().__init__(
            f"Invalid {formula_type} rule for {salesperson}: "
            f"{'; '.join(self.problems)}"
        )


class UnauthorizedRuleChangeError(CommissionRuleError):
    """Only admins may create, update, or delete commission rules."""

    code: str = "UNAUTHORIZED_RULE_CHANGE"

    def __init__(self, salesperson: str, actor_roles: tuple[str, ...]):
        self.salesperson = salesperson
        self.actor_roles = tuple(actor_roles)
        super().__init__(
            f"Roles {list(self.actor_roles)} may not change the commission "
            f"rule for {salesperson}"
        )


class CommissionRuleNotFoundError(CommissionRuleError):
    """No commission rule is stored for the salesperson."""

    code: str = "COMMISSION_RULE_NOT_FOUND"

    def __init__(self, salesperson: str):
        self.salesperson = salesperson
        super().__init__(f"No commission rule for salesperson: {salesperson}")
