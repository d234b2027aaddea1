"""
Property-based testing using Hypothesis.

This package contains property tests that verify structural invariants
hold across randomly generated inputs.

Modules:
    test_withdrawal_properties: transition convexity and cash flow shape
    test_operator_properties: diffusion operator sign structure
"""
