"""spacetime-token - profile manager for SpacetimeDB CLI tokens

Philosophy:
- One-way sync: profiles are the source of truth for the CLI config
- Never clobber what we do not own in the spacetime CLI config
- Fail fast with helpful guidance

spacetime-token stores named token/address pairs and switches the spacetime
CLI between them by editing its cli.toml in place.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
