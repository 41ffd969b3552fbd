"""
Expense Tracker - Source Package

Tracks categorized expenses and income against per-category budgets.

DESIGN PRINCIPLES:
1. A budget's spent total follows its category's expenses
2. Budget periods of one category never overlap
3. Multi-step changes commit together or not at all
4. The Other category is permanent
5. Every mutation and rejection is audited
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
