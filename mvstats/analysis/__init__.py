"""Statistical analyses exposed by the API."""
