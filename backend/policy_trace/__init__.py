"""Policy-to-code traceability: policies, requirements, decisions, rules, tests and evidence."""

__version__ = "0.1.0"
