"""HTTP routers for the sampha API."""
