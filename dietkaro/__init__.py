"""
DietKaro core.

Diet validation and compliance scoring for dietitian practices,
following Clean Architecture and Domain-Driven Design principles.

Structure:
- domain/: Restriction model, matcher, severity resolver, compliance scorer
- application/: Validation engine facade, compliance and adherence services
- infrastructure/: Caches, configuration, store adapters, lifecycle container
- tests/: Test suite (unit, integration)
"""

__version__ = "1.0.0"
