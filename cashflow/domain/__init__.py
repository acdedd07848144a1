"""Pure cash-flow rules with no database access."""
