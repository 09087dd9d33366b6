from policy_trace.models.policy import Policy, Requirement  # noqa: F401
from policy_trace.models.decision import Decision  # noqa: F401
from policy_trace.models.rule import Rule, TestCase  # noqa: F401
from policy_trace.models.attachment import (  # noqa: F401
    TargetType, Mapping, Evidence,
    MAPPING_TYPES, EVIDENCE_KINDS, EVIDENCE_STATUSES,
)
