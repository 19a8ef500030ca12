"""
Payroll periods, entry generation and the period lifecycle.
"""
