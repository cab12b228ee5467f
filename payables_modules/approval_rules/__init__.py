"""
Approval Rules Module.

Administrator-managed amount-range rules that decide how many approval
levels an invoice needs, and the matcher that picks the applicable rule.
"""

from payables_modules.approval_rules.models import ApprovalRule
from payables_modules.approval_rules.service import ApprovalRuleService

__all__ = ["ApprovalRule", "ApprovalRuleService"]
