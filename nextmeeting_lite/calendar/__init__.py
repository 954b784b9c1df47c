"""Calendar parsing, override resolution and recurrence expansion."""
