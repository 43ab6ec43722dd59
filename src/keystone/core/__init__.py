"""Core building blocks: configuration, paths and import aliases."""
