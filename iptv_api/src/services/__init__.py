"""Business logic services for accounts, email, and the upstream catalog."""
