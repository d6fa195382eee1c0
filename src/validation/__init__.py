"""Expense form validation package."""

from src.validation.validator import ExpenseInputValidator

__all__ = ["ExpenseInputValidator"]
