from .check import MESSAGE_MAX_LEN, CheckResult, Outcome, truncate_message

__all__ = ["MESSAGE_MAX_LEN", "CheckResult", "Outcome", "truncate_message"]
