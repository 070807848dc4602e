"""Detection primitives and detector backends for the waste capture pipeline."""
