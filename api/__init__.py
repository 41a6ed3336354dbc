"""Text generation and fetch collaborator interfaces."""
