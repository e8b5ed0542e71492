"""Token exchange against the Questrade login hosts."""
