"""Copyright © 2025 Pixelgen Technologies AB."""
