"""
Statutory deductions: rule sets, their versioning and the deduction calculator.
"""
