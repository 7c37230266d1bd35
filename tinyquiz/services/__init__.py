"""Domain services: generation, scoring, quiz lifecycle and sign-in."""
