"""
HURE Core - Payroll Computation Engine

Gross-to-net payroll for Kenyan organisations: statutory deductions
(PAYE, NSSF, SHIF, Housing Levy), pay proration from attendance, and an
auditable payroll period lifecycle.
"""

__version__ = "0.1.0"
