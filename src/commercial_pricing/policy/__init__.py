"""Policy subpackage - pricing policy execution and scheduling."""
from .pricing_policy_engine import ExecutionResult, PricingPolicyEngine
from .scheduler import PolicyScheduler

__all__ = ['ExecutionResult', 'PricingPolicyEngine', 'PolicyScheduler']
