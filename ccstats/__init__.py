"""Usage aggregation and filtering engine for daily token/cost reports."""
