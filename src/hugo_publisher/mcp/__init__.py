"""Model Context Protocol server exposing the Hugo publisher over stdio."""
