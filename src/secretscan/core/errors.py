"""Exception types for secretscan."""


class SecretScanError(Exception):
    """Base exception for all secretscan errors."""

    pass


class RuleError(SecretScanError):
    """Error in a rule definition. Fatal: raised before any traversal starts."""

    def __init__(self, message: str, rule_id: str):
        self.rule_id = rule_id
        super().__init__(message)


class InvalidPatternError(RuleError):
    """A rule's regex does not compile."""

    def __init__(self, rule_id: str, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(
            f"Rule '{rule_id}' has an invalid pattern {pattern!r}: {reason}", rule_id
        )


class InvalidGroupError(RuleError):
    """A rule's secret group is outside the pattern's capture groups."""

    def __init__(self, rule_id: str, group: int, group_count: int):
        self.group = group
        self.group_count = group_count
        super().__init__(
            f"Rule '{rule_id}' selects secret group {group} but its pattern "
            f"has {group_count} capture group(s)",
            rule_id,
        )


class DuplicateRuleError(RuleError):
    """Two rules share the same id."""

    def __init__(self, rule_id: str):
        super().__init__(f"Duplicate rule id: '{rule_id}'", rule_id)


class IgnoreFileReadError(SecretScanError):
    """The scan root's ignore file exists but could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read ignore file {path}: {reason}")


class ScanRootError(SecretScanError):
    """The scan root is missing or unreadable."""

    def __init__(self, root: str, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"Cannot scan {root}: {reason}")


class DeliveryError(SecretScanError):
    """A result collaborator (report, notification) failed.

    Delivery errors are recoverable: they never invalidate a computed result.
    """

    pass


class ReportWriteError(DeliveryError):
    """Writing the scan report failed."""

    pass


class NotificationError(DeliveryError):
    """Posting the webhook notification failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
