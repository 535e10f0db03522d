"""Service marketplace presence relay and ratings backend."""
