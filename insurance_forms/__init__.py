"""Schema-driven insurance application form engine."""
