"""
Compliance Kernel - Supplier Compliance Workflow Engine

Tracks whether suppliers meet a company's security requirements:
- Company/Supplier relationship lifecycle
- Per-requirement compliance workflows with retry and revision loops
- Questionnaire scoring with must-pass questions
- External security-grade verification policy
"""

__version__ = "0.1.0"
