"""HTTP routers for the DocVault API."""
