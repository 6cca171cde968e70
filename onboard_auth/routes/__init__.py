"""Request handling for the portal shell."""
