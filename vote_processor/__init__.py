"""Vote result processing service: turns raw governance votes into display-ready results."""
