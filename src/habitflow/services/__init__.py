"""Service layer: calculations, habit registry, notifications and email."""
