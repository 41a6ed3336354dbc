"""Research coordination and document generation."""
