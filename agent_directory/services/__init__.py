"""Directory services: storage, verification oracles, registration and feedback intake."""
