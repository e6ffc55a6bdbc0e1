"""
FamilyFinance - Source Package

A household finance tracker: transactions, budgets, goals, recurring bills
and family members, kept in one in-memory snapshot per signed-in user and
autosaved to storage, with Gemini-backed tips, plans, chat and video stories.

DESIGN PRINCIPLES:
1. One owner for the snapshot (the FinanceStore)
2. Mutations are pure functions of (state, command)
3. Corrupt stored data degrades to safe defaults, never crashes
4. Rejections are reported as values, not swallowed
5. Storage and AI services are swappable collaborators
"""

__version__ = "1.0.0"
__author__ = "FamilyFinance Team"
