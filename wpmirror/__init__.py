"""Mirror WordPress content into GitHub repositories."""
