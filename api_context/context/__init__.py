"""Context gating, history awareness and budgeted context assembly."""
