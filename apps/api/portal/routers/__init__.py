"""HTTP routers for the admin and client realms."""
