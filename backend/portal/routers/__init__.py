"""Public, authentication and applicant routers."""
