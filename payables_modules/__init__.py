"""
Payables Modules.

Thin orchestration layers over the payables kernel and engines.  Each
module contains:
- Domain models (frozen DTOs, the nouns)
- ORM models (persistence)
- A service facade that owns the transaction boundary

Modules:
- vendors: vendor registry, jurisdiction lookup, risk score recompute
- approval_rules: tiered amount-range rules and the rule matcher
- invoices: the invoice lifecycle (create, edit, approve, reject,
  overdue, escalate) and role-filtered reads
- payments: the settlement ledger (record and delete payments)
"""
